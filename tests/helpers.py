"""Request helpers shared by the API tests."""

ALICE = {
    "first_name": "Alice",
    "last_name": "Smith",
    "username": "alice",
    "password": "correct horse",
}

ALICE_RECORD = {
    "first_name": "Alice",
    "last_name": "Smith",
    "date_of_birth": "1990-01-01",
    "loan_amount_requested": 12345.6,
    "loan_status": "Approved",
}


def register(client, **overrides):
    data = {**ALICE, **overrides}
    return client.post("/auth/register", data=data)


def login(client, username=ALICE["username"], password=ALICE["password"]):
    return client.post("/auth/login", data={"username": username, "password": password})
