from conftest import add_bars, add_company, add_snapshot


def test_dashboard_page(client, dash):
    acme = add_company(dash.store, "ACME", "Acme Corp")
    add_snapshot(dash.store, acme, 101, 1.0)

    response = client.get("/")

    assert response.status_code == 200
    assert b"Market Dashboard" in response.data
    assert b"Acme Corp" in response.data


def test_analytics_page(client, dash):
    add_snapshot(dash.store, add_company(dash.store, "ACME", sector="Industrials"), 101, 1.0)
    response = client.get("/analytics")
    assert response.status_code == 200
    assert b"Industrials" in response.data


def test_watchlist_page_add_and_remove(client, dash):
    add_company(dash.store, "ACME", "Acme Corp")

    response = client.post("/watchlist", data={"symbol": "acme"})
    assert response.status_code == 302
    assert "message=" in response.headers["Location"]

    page = client.get("/watchlist")
    assert b"Acme Corp" in page.data

    response = client.post("/watchlist/ACME/remove")
    assert response.status_code == 302
    assert b"Acme Corp" not in client.get("/watchlist").data


def test_watchlist_page_reports_unknown_symbol(client):
    response = client.post("/watchlist", data={"symbol": "NOPE"}, follow_redirects=True)
    assert response.status_code == 200
    assert b"Company with symbol NOPE not found" in response.data


def test_admin_index(client, dash):
    add_company(dash.store, "ACME", "Acme Corp")
    for path in ("/admin", "/admin/"):
        response = client.get(path)
        assert response.status_code == 200
        assert b"Acme Corp" in response.data


def test_admin_add_company(client, dash):
    assert client.get("/admin/companies/add").status_code == 200

    response = client.post("/admin/companies", data={
        "symbol": "newco", "name": "New Co", "sector": "Retail", "market_cap": "2500000",
    })
    assert response.status_code == 302
    assert "success=" in response.headers["Location"]

    company = dash.stocks.get_company_details("NEWCO")
    assert company["name"] == "New Co"
    assert company["market_cap"] == 2500000


def test_admin_add_company_requires_fields(client, dash):
    response = client.post("/admin/companies", data={"symbol": "NEWCO", "name": ""})
    assert response.status_code == 400
    assert b"Symbol, name, and sector are required" in response.data
    assert dash.stocks.get_all_companies() == []


def test_admin_add_duplicate_symbol(client, dash):
    add_company(dash.store, "ACME")
    response = client.post("/admin/companies", data={"symbol": "ACME", "name": "Again", "sector": "X"})
    assert response.status_code == 400
    assert b"already exists" in response.data


def test_admin_edit_and_update(client, dash):
    acme = add_company(dash.store, "ACME", "Acme Corp")

    response = client.get(f"/admin/companies/{acme}/edit")
    assert response.status_code == 200
    assert b'value="ACME"' in response.data

    response = client.post(f"/admin/companies/{acme}", data={
        "symbol": "ACME", "name": "Acme Holdings", "sector": "Industrials",
    })
    assert response.status_code == 302
    assert dash.stocks.get_company_by_id(acme)["name"] == "Acme Holdings"


def test_admin_edit_unknown_company(client):
    response = client.get("/admin/companies/999/edit")
    assert response.status_code == 404
    assert b"Company with ID 999 not found" in response.data


def test_admin_delete(client, dash):
    acme = add_company(dash.store, "ACME", "Acme Corp")
    add_bars(dash.store, acme, [1, 2])

    response = client.post(f"/admin/companies/{acme}/delete")
    assert response.status_code == 302
    assert "success=" in response.headers["Location"]
    assert dash.stocks.get_all_companies() == []

    response = client.post(f"/admin/companies/{acme}/delete")
    assert "error=" in response.headers["Location"]


def test_unknown_page_renders_error_template(client):
    response = client.get("/no-such-page")
    assert response.status_code == 404
    assert b"Not Found" in response.data


def test_admin_delete_refreshes_market_report(client, dash):
    acme = add_company(dash.store, "ACME", "Acme Corp")
    add_snapshot(dash.store, acme, 100, 1.0)
    report = client.get("/api/market/report").get_json()["data"]
    assert report["market_overview"]["total_stocks"] == 1

    client.post(f"/admin/companies/{acme}/delete")

    report = client.get("/api/market/report").get_json()["data"]
    assert report["market_overview"]["total_stocks"] == 0
