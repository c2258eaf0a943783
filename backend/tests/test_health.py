def test_health_ok(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["db"] is True
    assert body["paymentGateway"] == "mock"
    assert body["paymentGatewayOk"] is True
