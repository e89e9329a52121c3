from __future__ import annotations


def normalize_company_code(company_code: str) -> str:
    return company_code.strip().lower()


class CompanyIdCache:
    """Company code -> numeric company ID, keyed case-insensitively.

    Entries never expire: a code maps to one ID for the life of a session.
    """

    def __init__(self) -> None:
        self._store: dict[str, int] = {}

    def get(self, company_code: str) -> int | None:
        return self._store.get(normalize_company_code(company_code))

    def set(self, company_code: str, company_id: int) -> None:
        self._store[normalize_company_code(company_code)] = company_id

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, company_code: str) -> bool:
        return normalize_company_code(company_code) in self._store

    def __len__(self) -> int:
        return len(self._store)
