def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, role="buyer", name="Test User", password="secret123"):
    r = client.post("/api/auth/register", json={"name": name, "email": email, "password": password, "role": role})
    assert r.status_code == 201, r.text
    return r.json()


def login(client, email, password):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


def product_payload(**overrides):
    payload = {
        "name": "Aurora Phone X",
        "images": [f"https://i.ibb.co/phone/{i}.png" for i in range(5)],
        "variants": ["Black", "White", "Blue", "Red", "Green"],
        "price": 499.99,
        "stock": 10,
        "description": "A fast phone with a long-lasting battery.",
        "specifications": ["6.1in OLED", "128GB", "8GB RAM", "5G", "Dual camera", "4500mAh"],
        "categorySlug": "electronics",
        "shopName": "Gadget Hub",
    }
    payload.update(overrides)
    return payload


def create_product(client, token=None, role="seller", **overrides):
    headers = {"role": role}
    if token:
        headers.update(auth(token))
    r = client.post("/api/products", json=product_payload(**overrides), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()
