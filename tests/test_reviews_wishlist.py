from tests.helpers import auth, create_product, register


def test_review_flow(client, catalog):
    product = create_product(client)
    alice = register(client, "alice@example.com")["token"]
    bob = register(client, "bob@example.com")["token"]

    r = client.post(f"/api/products/{product['id']}/reviews", json={"rating": 5, "comment": "Great"}, headers=auth(alice))
    assert r.status_code == 201
    assert r.json()["productId"] == product["id"]
    client.post(f"/api/products/{product['id']}/reviews", json={"rating": 2}, headers=auth(bob))

    reviews = client.get(f"/api/products/{product['id']}/reviews").json()
    assert sorted(r["rating"] for r in reviews) == [2, 5]

    detail = client.get(f"/api/products/{product['id']}").json()
    assert detail["reviewCount"] == 2
    assert detail["averageRating"] == 3.5


def test_one_review_per_user(client, catalog):
    product = create_product(client)
    token = register(client, "alice@example.com")["token"]
    client.post(f"/api/products/{product['id']}/reviews", json={"rating": 4}, headers=auth(token))
    r = client.post(f"/api/products/{product['id']}/reviews", json={"rating": 1}, headers=auth(token))
    assert r.status_code == 409


def test_review_rating_bounds(client, catalog):
    product = create_product(client)
    token = register(client, "alice@example.com")["token"]
    for rating in (0, 6):
        r = client.post(f"/api/products/{product['id']}/reviews", json={"rating": rating}, headers=auth(token))
        assert r.status_code == 422


def test_review_unknown_product(client, catalog):
    token = register(client, "alice@example.com")["token"]
    r = client.post("/api/products/missing/reviews", json={"rating": 4}, headers=auth(token))
    assert r.status_code == 404
    assert client.get("/api/products/missing/reviews").status_code == 404


def test_wishlist_is_idempotent(client, catalog):
    product = create_product(client)
    token = register(client, "alice@example.com")["token"]

    r = client.post("/api/wishlist", json={"productId": product["id"]}, headers=auth(token))
    assert r.json()["added"] is True
    r = client.post("/api/wishlist", json={"productId": product["id"]}, headers=auth(token))
    assert r.json()["added"] is False

    items = client.get("/api/wishlist", headers=auth(token)).json()
    assert len(items) == 1
    assert items[0]["product"]["name"] == product["name"]


def test_wishlist_per_user(client, catalog):
    product = create_product(client)
    alice = register(client, "alice@example.com")["token"]
    bob = register(client, "bob@example.com")["token"]
    client.post("/api/wishlist", json={"productId": product["id"]}, headers=auth(alice))
    assert client.get("/api/wishlist", headers=auth(bob)).json() == []


def test_wishlist_unknown_product(client, catalog):
    token = register(client, "alice@example.com")["token"]
    r = client.post("/api/wishlist", json={"productId": "missing"}, headers=auth(token))
    assert r.status_code == 404
