"""
Endpoint Table Tests
--------------------
Declarative pass-through endpoints: path building, query parameters,
body checks, and which addressing convention each one uses.
"""

import asyncio
import json

import pytest

from avatax_mcp.endpoints import BY_COMPANY_CODE, ENDPOINTS, get_endpoint
from avatax_mcp.errors import ValidationError

ACME = [{"id": 42, "companyCode": "ACME"}]


class TestEndpointTable:
    """Tests for the Endpoint helpers without any I/O."""

    def test_unknown_endpoint(self):
        with pytest.raises(ValueError, match="Unknown AvaTax endpoint"):
            get_endpoint("launch_rocket")

    def test_transactions_are_addressed_by_code(self):
        assert ENDPOINTS["get_transaction"].addressing == BY_COMPANY_CODE
        assert ENDPOINTS["void_transaction"].addressing == BY_COMPANY_CODE

    @pytest.mark.parametrize("bad_id", [0, -3, None, "7", True])
    def test_nexus_id_must_be_positive_int(self, bad_id):
        with pytest.raises(ValidationError, match="nexus ID"):
            get_endpoint("get_nexus").build_path({"id": bad_id})

    def test_form_code_is_percent_encoded(self):
        path = get_endpoint("get_nexus_by_form_code").build_path({"form_code": " ST 1/A "})
        assert path == "/nexus/byform/ST%201%2FA"

    def test_transaction_code_uses_company_code_escapes(self):
        path = get_endpoint("get_transaction").build_path({"transaction_code": "INV/1 2"})
        assert path == "/transactions/INV_-ava2f-_1%202"

    def test_query_params_skip_empty_values(self):
        params = get_endpoint("list_nexus").build_params(
            {"filter": "country eq 'US'", "top": 10, "skip": None, "order_by": ""}
        )
        assert params == {"$filter": "country eq 'US'", "$top": "10"}

    def test_create_nexus_wraps_body_in_list(self):
        assert get_endpoint("create_nexus").build_body({"country": "US"}) == [{"country": "US"}]

    def test_declare_by_address_requires_full_address(self):
        with pytest.raises(ValidationError, match="postalCode"):
            get_endpoint("declare_nexus_by_address").build_body(
                {"line1": "1 Main", "city": "Seattle", "region": "WA", "country": "US"}
            )

    def test_body_ignored_for_reads(self):
        assert get_endpoint("list_nexus").build_body({"anything": 1}) is None


class TestCallEndpoint:
    """Tests for AvaTaxClient.call_endpoint over the mock transport."""

    def test_list_nexus_resolves_company_id(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        asyncio.run(client.call_endpoint("list_nexus", "acme", top=5))

        assert fake.paths == ["/api/v2/companies", "/api/v2/companies/42/nexus"]
        assert fake.requests[1].url.params["$top"] == "5"

    def test_default_company_is_used(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME), company_code="ACME")

        asyncio.run(client.call_endpoint("delete_nexus", id=17))

        assert fake.requests[-1].method == "DELETE"
        assert fake.paths[-1] == "/api/v2/companies/42/nexus/17"

    def test_create_nexus_posts_list(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        asyncio.run(client.call_endpoint("create_nexus", "ACME", body={"country": "US", "region": "WA"}))

        request = fake.requests[-1]
        assert request.method == "POST"
        assert json.loads(request.content) == [{"country": "US", "region": "WA"}]

    def test_get_transaction_skips_lookup(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        asyncio.run(client.call_endpoint(
            "get_transaction", "MY CO", transaction_code="INV-1", include="Lines"
        ))

        assert fake.paths == ["/api/v2/companies/MY%20CO/transactions/INV-1"]
        assert fake.requests[0].url.params["$include"] == "Lines"

    def test_void_transaction_body(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        asyncio.run(client.call_endpoint(
            "void_transaction", "ACME", body={"code": "DocVoided"}, transaction_code="INV-1"
        ))

        assert fake.paths == ["/api/v2/companies/ACME/transactions/INV-1/void"]
        assert json.loads(fake.requests[0].content) == {"code": "DocVoided"}

    def test_validation_happens_before_any_request(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        with pytest.raises(ValidationError):
            asyncio.run(client.call_endpoint("update_nexus", "ACME", body={"region": "WA"}, id=0))

        assert fake.requests == []

    def test_certificates_filter_by_customer(self, make_client, companies_handler):
        client, fake = make_client(companies_handler(ACME))

        asyncio.run(client.get_certificates("ACME", customer_code="C'1"))

        request = fake.requests[-1]
        assert request.url.path == "/api/v2/companies/42/certificates"
        assert request.url.params["$filter"] == "customers/any(c: c/customerCode eq 'C1')"
        assert request.url.params["$orderby"] == "createdDate desc"
