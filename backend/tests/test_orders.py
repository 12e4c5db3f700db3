"""``POST /addOrder`` in its cart-line and checkout forms."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest import mock

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import mongomock
from bson import ObjectId
from pymongo.errors import PyMongoError

from backend.app import create_app
from backend.src.db import MongoStore
from backend.tests.support import AppTestCase

CHECKOUT = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "address": "12 St James's Square",
    "city": "London",
    "zip": "SW1Y 4JH",
    "state": "Greater London",
    "phoneNumber": "07700900123",
    "method": "home",
    "sendGift": True,
    "lessonIDs": [1, 3],
}


class CartLineOrderTestCase(AppTestCase):
    def test_first_order_creates_a_line(self) -> None:
        response = self.client.post("/addOrder", json={"lessonID": 7})

        self.assertEqual(201, response.status_code)
        body = response.get_json()
        self.assertEqual(7, body["lessonID"])
        self.assertEqual(1, body["quantity"])

        stored = self.database["order"].find_one({"_id": ObjectId(body["orderId"])})
        self.assertEqual(7, stored["lessonID"])
        self.assertEqual(1, stored["quantity"])

    def test_repeat_order_increments_the_same_line(self) -> None:
        self.client.post("/addOrder", json={"lessonID": 7})
        response = self.client.post("/addOrder", json={"lessonID": 7})

        self.assertEqual(200, response.status_code)
        self.assertEqual(2, response.get_json()["quantity"])
        self.assertEqual(1, self.database["order"].count_documents({"lessonID": 7}))
        self.assertEqual(2, self.database["order"].find_one({"lessonID": 7})["quantity"])

    def test_extra_fields_are_kept_from_the_first_order(self) -> None:
        self.client.post("/addOrder", json={"lessonID": 8, "name": "Ann"})
        self.client.post("/addOrder", json={"lessonID": 8, "name": "Bob", "quantity": 40})

        stored = self.database["order"].find_one({"lessonID": 8})
        self.assertEqual("Ann", stored["name"])
        self.assertEqual(2, stored["quantity"])

    def test_quantity_route_follows_the_cart(self) -> None:
        for _ in range(3):
            self.client.post("/addOrder", json={"lessonID": 4})

        response = self.client.get("/order/count/4")

        self.assertEqual({"quantity": 3}, response.get_json())

    def test_string_lesson_id_joins_the_integer_line(self) -> None:
        first = self.client.post("/addOrder", json={"lessonID": "7"})
        second = self.client.post("/addOrder", json={"lessonID": 7})

        self.assertEqual(201, first.status_code)
        self.assertEqual(7, first.get_json()["lessonID"])
        self.assertEqual(200, second.status_code)
        self.assertEqual(2, second.get_json()["quantity"])
        self.assertEqual(1, self.database["order"].count_documents({}))
        self.assertEqual(
            {"quantity": 2}, self.client.get("/order/count/7").get_json()
        )

    def test_operator_field_names_are_refused(self) -> None:
        for payload in (
            {"lessonID": 10, "$set": {"quantity": 99}},
            {"lessonID": 9, "quantity.x": 1},
            {"lessonID": 9, "meta": [{"$where": "1"}]},
        ):
            with self.subTest(payload=payload):
                response = self.client.post("/addOrder", json=payload)
                self.assertEqual(400, response.status_code)
                self.assertEqual("Invalid field names", response.get_json()["error"])
        self.assertEqual(0, self.database["order"].count_documents({}))

    def test_cart_lines_and_checkouts_share_the_collection(self) -> None:
        self.client.post("/addOrder", json=CHECKOUT)
        self.client.post("/addOrder", json=CHECKOUT)
        response = self.client.post("/addOrder", json={"lessonID": 3})

        self.assertEqual(201, response.status_code)
        self.assertEqual(3, self.database["order"].count_documents({}))

    def test_lesson_id_must_be_present(self) -> None:
        for payload in ({"lessonID": None}, {"lessonID": ""}, {"lessonID": [1]}):
            with self.subTest(payload=payload):
                response = self.client.post("/addOrder", json=payload)
                self.assertEqual(400, response.status_code)


class CheckoutOrderTestCase(AppTestCase):
    def test_saves_checkout_order(self) -> None:
        response = self.client.post("/addOrder", json=CHECKOUT)

        self.assertEqual(201, response.status_code)
        body = response.get_json()
        self.assertEqual("Order saved successfully", body["message"])

        stored = self.database["order"].find_one({"_id": ObjectId(body["orderId"])})
        self.assertEqual([1, 3], stored["lessonIDs"])
        self.assertTrue(stored["sendGift"])
        self.assertNotIn("quantity", stored)

    def test_missing_fields_are_reported(self) -> None:
        payload = dict(CHECKOUT)
        del payload["city"]
        payload["zip"] = "  "

        response = self.client.post("/addOrder", json=payload)

        self.assertEqual(400, response.status_code)
        body = response.get_json()
        self.assertEqual("Missing or invalid required fields", body["error"])
        self.assertEqual({"city", "zip"}, set(body["details"]))
        self.assertEqual(0, self.database["order"].count_documents({}))

    def test_lesson_ids_must_be_a_list(self) -> None:
        response = self.client.post("/addOrder", json=dict(CHECKOUT, lessonIDs="1,3"))

        self.assertEqual(400, response.status_code)
        self.assertIn("lessonIDs", response.get_json()["details"])

    def test_store_failure(self) -> None:
        with mock.patch.object(
            mongomock.collection.Collection, "insert_one", side_effect=PyMongoError("down")
        ):
            response = self.client.post("/addOrder", json=CHECKOUT)

        self.assertEqual(500, response.status_code)
        self.assertEqual({"error": "Failed to save order"}, response.get_json())


class AddOrderRequestTestCase(AppTestCase):
    def test_body_must_name_lessons(self) -> None:
        response = self.client.post("/addOrder", json={"firstName": "Ada"})

        self.assertEqual(400, response.status_code)

    def test_body_must_be_a_json_object(self) -> None:
        for kwargs in ({"json": [1, 2]}, {"data": "not json"}):
            with self.subTest(kwargs=kwargs):
                response = self.client.post("/addOrder", **kwargs)
                self.assertEqual(400, response.status_code)

    def test_not_ready_store(self) -> None:
        client = create_app(store=MongoStore()).test_client()

        response = client.post("/addOrder", json={"lessonID": 7})

        self.assertEqual(500, response.status_code)
        self.assertEqual({"error": "Database not connected"}, response.get_json())


if __name__ == "__main__":
    unittest.main()
