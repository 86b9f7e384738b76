from storefront_service import models

from .conftest import PASSWORD, make_user

REVIEW = {"rating": 4, "comment": "Clear sound and easy setup."}


def test_submit_review_updates_product_rating(auth_client, db, catalog) -> None:
    response = auth_client.post(f"/products/{catalog.speaker.slug}/reviews", json=REVIEW)

    assert response.status_code == 200
    body = response.json()
    assert body["review"]["rating"] == 4
    assert body["review"]["reviewer"] == "Demo Shopper"
    assert body["product_rating"] == 4.0
    assert db.get(models.Product, catalog.speaker.id).rating == 4.0


def test_second_review_from_same_user_replaces_first(auth_client, db, catalog) -> None:
    auth_client.post(f"/products/{catalog.speaker.slug}/reviews", json=REVIEW)
    response = auth_client.post(
        f"/products/{catalog.speaker.slug}/reviews",
        json={"rating": 2, "comment": "Started crackling after a week."},
    )

    assert response.status_code == 200
    assert response.json()["product_rating"] == 2.0
    assert db.query(models.Review).filter(models.Review.product_id == catalog.speaker.id).count() == 1


def test_rating_is_mean_of_all_reviews(auth_client, client, db, catalog) -> None:
    auth_client.post(f"/products/{catalog.speaker.slug}/reviews", json={"rating": 5, "comment": "Best speaker I own."})

    other = make_user(db, email="second@example.com", name="Second Shopper")
    client.post("/auth/logout")
    client.post("/auth/login", json={"email": other.email, "password": PASSWORD})
    response = client.post(
        f"/products/{catalog.speaker.slug}/reviews",
        json={"rating": 2, "comment": "Too quiet for my room."},
    )

    assert response.json()["product_rating"] == 3.5


def test_review_requires_session(client, catalog) -> None:
    response = client.post(f"/products/{catalog.speaker.slug}/reviews", json=REVIEW)
    assert response.status_code == 401


def test_review_validation(auth_client, catalog) -> None:
    url = f"/products/{catalog.speaker.slug}/reviews"
    assert auth_client.post(url, json={"rating": 6, "comment": "Out of range rating"}).status_code == 400
    assert auth_client.post(url, json={"rating": 3, "comment": "short"}).status_code == 400


def test_review_for_unknown_product(auth_client) -> None:
    response = auth_client.post("/products/nope/reviews", json=REVIEW)
    assert response.status_code == 404
