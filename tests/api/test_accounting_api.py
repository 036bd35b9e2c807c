"""
Tests for the chart of accounts and journal entry endpoints.

These test the HTTP layer: status codes, camelCase payloads
and error bodies. Business logic is tested in the service
tests.
"""

from decimal import Decimal


def create_account(client, code, name, account_type="ASSET", category="CURRENT_ASSET", **extra):
    response = client.post("/accounting/chart-of-accounts", json={
        "accountCode": code,
        "accountName": name,
        "accountType": account_type,
        "accountCategory": category,
        **extra,
    })
    assert response.status_code == 201, response.text
    return response.json()


def voucher_payload(debit_id, credit_id, amount="250.00", **extra):
    return {
        "voucherType": "JOURNAL",
        "date": "2024-03-15",
        "description": "Office rent",
        "entries": [
            {"accountId": debit_id, "description": "Rent", "debitAmount": amount},
            {"accountId": credit_id, "description": "Rent", "creditAmount": amount},
        ],
        **extra,
    }


class TestChartOfAccounts:

    def test_create_account_returns_camel_case(self, client):
        data = create_account(client, "1001", "Cash")

        assert data["accountCode"] == "1001"
        assert data["accountType"] == "ASSET"
        assert data["normalBalance"] == "DEBIT"
        assert Decimal(data["currentBalance"]) == Decimal("0")
        assert data["isActive"] is True

    def test_snake_case_request_also_accepted(self, client):
        response = client.post("/accounting/chart-of-accounts", json={
            "account_code": "2001",
            "account_name": "Accounts Payable",
            "account_type": "LIABILITY",
            "account_category": "CURRENT_LIABILITY",
        })
        assert response.status_code == 201
        assert response.json()["normalBalance"] == "CREDIT"

    def test_contradicting_normal_balance_rejected(self, client):
        response = client.post("/accounting/chart-of-accounts", json={
            "accountCode": "1001",
            "accountName": "Cash",
            "accountType": "ASSET",
            "accountCategory": "CURRENT_ASSET",
            "normalBalance": "CREDIT",
        })
        assert response.status_code == 422

    def test_duplicate_code_returns_400(self, client):
        create_account(client, "1001", "Cash")
        response = client.post("/accounting/chart-of-accounts", json={
            "accountCode": "1001",
            "accountName": "Cash Again",
            "accountType": "ASSET",
            "accountCategory": "CURRENT_ASSET",
        })

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "DUPLICATE_ACCOUNT_CODE"

    def test_duplicate_tag_triple_returns_409(self, client):
        tags = ["customer", "accounts-receivable", "cust0001"]
        create_account(client, "11001", "Accounts Receivable - Jane", tags=tags)
        response = client.post("/accounting/chart-of-accounts", json={
            "accountCode": "11002",
            "accountName": "Accounts Receivable - Jane again",
            "accountType": "ASSET",
            "accountCategory": "CURRENT_ASSET",
            "tags": tags,
        })

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "DUPLICATE_ACCOUNT_TAGS"
        assert detail["details"]["account_code"] == "11001"

    def test_list_filters_by_type(self, client):
        create_account(client, "1001", "Cash")
        create_account(client, "4001", "Sales", "REVENUE", "OPERATING_REVENUE")

        response = client.get("/accounting/chart-of-accounts", params={"accountType": "REVENUE"})

        assert [a["accountCode"] for a in response.json()] == ["4001"]

    def test_initialize_then_initialize_again(self, client):
        first = client.post("/accounting/chart-of-accounts/initialize")
        second = client.post("/accounting/chart-of-accounts/initialize")

        assert first.status_code == 201
        assert len(first.json()) == 14
        assert second.json() == []

    def test_get_unknown_account_returns_404(self, client):
        response = client.get("/accounting/chart-of-accounts/999")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "ACCOUNT_NOT_FOUND"

    def test_update_account_name(self, client):
        account = create_account(client, "1001", "Cash")

        response = client.put(
            f"/accounting/chart-of-accounts/{account['id']}",
            json={"accountName": "Petty Cash"},
        )

        assert response.status_code == 200
        assert response.json()["accountName"] == "Petty Cash"

    def test_delete_unused_account(self, client):
        account = create_account(client, "1001", "Cash")

        response = client.delete(f"/accounting/chart-of-accounts/{account['id']}")

        assert response.status_code == 204
        assert client.get(f"/accounting/chart-of-accounts/{account['id']}").status_code == 404

    def test_delete_referenced_account_returns_409(self, client):
        cash = create_account(client, "1001", "Cash")
        rent = create_account(client, "5200", "Rent", "EXPENSE", "OPERATING_EXPENSE")
        voucher = client.post("/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])).json()

        response = client.delete(f"/accounting/chart-of-accounts/{cash['id']}")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "ACCOUNT_IN_USE"
        assert detail["details"]["voucher_numbers"] == [voucher["voucherNumber"]]

    def test_anomalies_empty_for_clean_ledger(self, client):
        client.post("/accounting/chart-of-accounts/initialize")
        response = client.get("/accounting/chart-of-accounts/anomalies")

        assert response.status_code == 200
        assert response.json() == []


class TestJournalEntries:

    def _accounts(self, client):
        cash = create_account(client, "1001", "Cash")
        rent = create_account(client, "5200", "Rent", "EXPENSE", "OPERATING_EXPENSE")
        return cash, rent

    def test_create_voucher_is_draft(self, client):
        cash, rent = self._accounts(client)

        response = client.post(
            "/accounting/journal-entries",
            json=voucher_payload(rent["id"], cash["id"]),
            headers={"X-User": "alice"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["voucherNumber"] == "JV2024001"
        assert data["status"] == "DRAFT"
        assert data["createdBy"] == "alice"
        assert [line["accountCode"] for line in data["entries"]] == ["5200", "1001"]
        assert Decimal(data["totalDebit"]) == Decimal("250")

    def test_unbalanced_voucher_returns_400(self, client):
        cash, rent = self._accounts(client)
        payload = voucher_payload(rent["id"], cash["id"])
        payload["entries"][1]["creditAmount"] = "200.00"

        response = client.post("/accounting/journal-entries", json=payload)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "UNBALANCED_ENTRY"
        assert Decimal(detail["details"]["difference"]) == Decimal("50")

    def test_amount_beyond_four_places_returns_422(self, client):
        cash, rent = self._accounts(client)

        response = client.post(
            "/accounting/journal-entries",
            json=voucher_payload(rent["id"], cash["id"], amount="250.00001"),
        )

        assert response.status_code == 422
        assert client.get("/accounting/journal-entries").json()["total"] == 0

    def test_line_without_amount_returns_invalid_line(self, client):
        cash, rent = self._accounts(client)
        payload = voucher_payload(rent["id"], cash["id"])
        payload["entries"].append({"accountId": cash["id"], "description": "Empty"})

        response = client.post("/accounting/journal-entries", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_LINE"

    def test_post_moves_balances(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()

        response = client.post(
            f"/accounting/journal-entries/{voucher['id']}/post",
            headers={"X-User": "bob"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "POSTED"
        assert response.json()["postedBy"] == "bob"
        cash_after = client.get(f"/accounting/chart-of-accounts/{cash['id']}").json()
        rent_after = client.get(f"/accounting/chart-of-accounts/{rent['id']}").json()
        assert Decimal(cash_after["currentBalance"]) == Decimal("-250")
        assert Decimal(rent_after["currentBalance"]) == Decimal("250")

    def test_posting_twice_returns_400(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()
        client.post(f"/accounting/journal-entries/{voucher['id']}/post")

        response = client.post(f"/accounting/journal-entries/{voucher['id']}/post")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_reverse_returns_both_vouchers(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()
        client.post(f"/accounting/journal-entries/{voucher['id']}/post")

        response = client.post(
            f"/accounting/journal-entries/{voucher['id']}/reverse",
            json={"reason": "Posted twice"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["originalEntry"]["status"] == "REVERSED"
        assert data["reversalEntry"]["status"] == "POSTED"
        assert data["reversalEntry"]["reversalOfId"] == voucher["id"]
        cash_after = client.get(f"/accounting/chart-of-accounts/{cash['id']}").json()
        assert Decimal(cash_after["currentBalance"]) == Decimal("0")

    def test_reverse_twice_returns_409(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()
        client.post(f"/accounting/journal-entries/{voucher['id']}/post")
        client.post(f"/accounting/journal-entries/{voucher['id']}/reverse", json={"reason": "x"})

        response = client.post(
            f"/accounting/journal-entries/{voucher['id']}/reverse", json={"reason": "again"}
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ALREADY_REVERSED"

    def test_delete_posted_voucher_refused(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()
        client.post(f"/accounting/journal-entries/{voucher['id']}/post")

        response = client.delete(f"/accounting/journal-entries/{voucher['id']}")

        assert response.status_code == 400

    def test_delete_draft(self, client):
        cash, rent = self._accounts(client)
        voucher = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"])
        ).json()

        response = client.delete(f"/accounting/journal-entries/{voucher['id']}")

        assert response.status_code == 204
        assert client.get(f"/accounting/journal-entries/{voucher['id']}").status_code == 404

    def test_list_with_search_and_paging(self, client):
        cash, rent = self._accounts(client)
        for n in range(3):
            client.post(
                "/accounting/journal-entries",
                json=voucher_payload(rent["id"], cash["id"], referenceNumber=f"INV-{n}"),
            )

        response = client.get("/accounting/journal-entries", params={"limit": 2})
        searched = client.get("/accounting/journal-entries", params={"search": "INV-1"})

        data = response.json()
        assert (data["total"], data["pages"], len(data["items"])) == (3, 2, 2)
        assert [v["referenceNumber"] for v in searched.json()["items"]] == ["INV-1"]

    def test_validate_balance_saves_nothing(self, client):
        response = client.post("/accounting/journal-entries/validate-balance", json={
            "entries": [
                {"debitAmount": "100.004"},
                {"creditAmount": "100.00"},
            ],
        })

        data = response.json()
        assert data["isBalanced"] is True
        assert client.get("/accounting/journal-entries").json()["total"] == 0

    def test_next_voucher_number_preview(self, client):
        response = client.get(
            "/accounting/next-voucher-number",
            params={"voucherType": "CASH_PAYMENT", "date": "2024-06-01"},
        )

        assert response.json()["nextVoucherNumber"] == "CP2024001"

    def test_voucher_types(self, client):
        data = client.get("/accounting/voucher-types").json()
        prefixes = {item["value"]: item["prefix"] for item in data}

        assert len(data) == 10
        assert prefixes["JOURNAL"] == "JV"

    def test_statistics(self, client):
        cash, rent = self._accounts(client)
        first = client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"], "100")
        ).json()
        client.post(
            "/accounting/journal-entries", json=voucher_payload(rent["id"], cash["id"], "300")
        )
        client.post(f"/accounting/journal-entries/{first['id']}/post")

        data = client.get("/accounting/journal-entries/stats").json()

        assert data["totalEntries"] == 2
        assert Decimal(data["averageAmount"]) == Decimal("200")
        statuses = {row["key"]: row["count"] for row in data["statusBreakdown"]}
        assert statuses == {"DRAFT": 1, "POSTED": 1}
