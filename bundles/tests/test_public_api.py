from datetime import timedelta

from django.core.cache import cache
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from bundles.models import Bundle
from bundles.services.cache_service import homepage_cache_key
from bundles.services.management_service import BundleManagementService
from bundles.tests.helpers import create_configurable_bundle, create_fixed_bundle, create_product


class PublicBundleAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.kettle = create_product("Kettle", "3500")
        self.toaster = create_product("Toaster", "4200")
        self.breakfast = create_fixed_bundle("Breakfast Set", [self.kettle, self.toaster])


class PublicBrowsingTests(PublicBundleAPITestCase):
    def test_list_shows_only_available_bundles(self):
        now = timezone.now()
        create_fixed_bundle("Draft Set", [self.kettle], is_active=False)
        create_fixed_bundle("Future Set", [self.kettle], starts_at=now + timedelta(days=3))
        create_fixed_bundle("Old Set", [self.kettle], ends_at=now - timedelta(days=3))
        create_fixed_bundle("Sold Set", [self.kettle], stock_limit=1, stock_sold=1)
        create_fixed_bundle("Gone Set", [self.kettle], deleted_at=now)

        response = self.client.get(reverse("public-bundle-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b["name"] for b in response.data["results"]], ["Breakfast Set"])

    def test_list_hides_internal_fields(self):
        response = self.client.get(reverse("public-bundle-list"))

        bundle = response.data["results"][0]
        self.assertNotIn("view_count", bundle)
        self.assertNotIn("revenue", bundle)
        self.assertEqual(bundle["pricing"]["final_price"], "6930.00")

    def test_sort_by_popularity(self):
        create_fixed_bundle("Tea Set", [self.kettle], purchase_count=9)

        response = self.client.get(reverse("public-bundle-list"), {"sort": "popularity"})

        self.assertEqual([b["name"] for b in response.data["results"]], ["Tea Set", "Breakfast Set"])

    def test_detail_by_slug_counts_a_view(self):
        response = self.client.get(reverse("public-bundle-detail", args=["breakfast-set"]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], self.breakfast.id)
        self.breakfast.refresh_from_db()
        self.assertEqual(self.breakfast.view_count, 1)

    def test_unavailable_bundle_detail_is_not_found(self):
        create_fixed_bundle("Draft Set", [self.kettle], is_active=False)

        response = self.client.get(reverse("public-bundle-detail", args=["draft-set"]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_savings_hidden_when_switched_off(self):
        Bundle.objects.filter(pk=self.breakfast.pk).update(show_savings=False)

        response = self.client.get(reverse("public-bundle-detail", args=["breakfast-set"]))

        self.assertNotIn("savings_amount", response.data["pricing"])
        self.assertNotIn("savings_percentage", response.data["pricing"])

    def test_related_excludes_the_bundle_itself(self):
        create_fixed_bundle("Tea Set", [self.kettle])

        response = self.client.get(reverse("public-bundle-related", args=["breakfast-set"]))

        self.assertEqual([b["name"] for b in response.data], ["Tea Set"])


class HomepageTests(PublicBundleAPITestCase):
    def setUp(self):
        super().setUp()
        Bundle.objects.filter(pk=self.breakfast.pk).update(
            show_on_homepage=True, homepage_position=Bundle.HomepagePosition.CAROUSEL
        )
        create_fixed_bundle("Tea Set", [self.kettle], show_on_homepage=True)
        create_fixed_bundle("Hidden Set", [self.kettle], show_on_homepage=True, is_active=False)

    def test_grouped_by_position(self):
        response = self.client.get(reverse("public-bundle-homepage"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b["name"] for b in response.data["carousel"]], ["Breakfast Set"])
        self.assertEqual([b["name"] for b in response.data["grid"]], ["Tea Set"])
        self.assertEqual(response.data["banner"], [])

    def test_cached_until_a_bundle_changes(self):
        self.client.get(reverse("public-bundle-homepage"))
        self.assertIsNotNone(cache.get(homepage_cache_key()))

        with self.captureOnCommitCallbacks(execute=True):
            BundleManagementService().toggle(self.breakfast)

        self.assertIsNone(cache.get(homepage_cache_key()))
        response = self.client.get(reverse("public-bundle-homepage"))
        self.assertEqual(response.data["carousel"], [])

    def test_cached_homepage_shows_current_prices(self):
        first = self.client.get(reverse("public-bundle-homepage"))
        self.assertEqual(first.data["carousel"][0]["pricing"]["final_price"], "6930.00")

        self.kettle.price = "4500"
        self.kettle.save()

        second = self.client.get(reverse("public-bundle-homepage"))
        self.assertIsNotNone(cache.get(homepage_cache_key()))
        self.assertEqual(second.data["carousel"][0]["pricing"]["final_price"], "7830.00")

    def test_cached_homepage_drops_bundles_that_ended(self):
        self.client.get(reverse("public-bundle-homepage"))

        Bundle.objects.filter(name="Tea Set").update(ends_at=timezone.now() - timedelta(minutes=1))

        response = self.client.get(reverse("public-bundle-homepage"))
        self.assertEqual(response.data["grid"], [])


class SelectionAPITests(PublicBundleAPITestCase):
    def setUp(self):
        super().setUp()
        self.washer = create_product("Washer", "30000")
        self.dryer_a = create_product("Dryer A", "25000")
        self.dryer_b = create_product("Dryer B", "21000")
        self.laundry = create_configurable_bundle(
            "Laundry Room",
            [("Washer", [self.washer]), ("Dryer", [self.dryer_a, self.dryer_b])],
        )
        self.washer_slot, self.dryer_slot = self.laundry.slots.all()

    def selections(self, dryer):
        return {
            "selections": [
                {"slot_id": self.washer_slot.id, "product_ids": [self.washer.id]},
                {"slot_id": self.dryer_slot.id, "product_ids": [dryer.id]},
            ]
        }

    def test_default_price_uses_cheapest_choice(self):
        response = self.client.get(reverse("public-bundle-detail", args=["laundry-room"]))
        self.assertEqual(response.data["pricing"]["base_price"], "51000.00")

    def test_calculate_prices_the_selection(self):
        response = self.client.post(
            reverse("public-bundle-calculate", args=["laundry-room"]), self.selections(self.dryer_a), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["pricing"]["base_price"], "55000.00")
        self.assertEqual([line["product_id"] for line in response.data["lines"]], [self.washer.id, self.dryer_a.id])
        self.assertEqual(response.data["lines"][1]["unit_price"], "25000.00")

    def test_selection_errors_are_listed(self):
        response = self.client.post(
            reverse("public-bundle-calculate", args=["laundry-room"]),
            {"selections": [{"slot_id": self.dryer_slot.id, "product_ids": [self.washer.id]}]},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        codes = sorted(error["code"] for error in response.data["errors"])
        self.assertEqual(codes, ["product_not_in_slot", "too_few"])

    def test_add_to_cart_returns_lines_and_counts_once(self):
        url = reverse("public-bundle-add-to-cart", args=["laundry-room"])

        first = self.client.post(url, self.selections(self.dryer_b), format="json", HTTP_IDEMPOTENCY_KEY="cart-7")
        retry = self.client.post(url, self.selections(self.dryer_b), format="json", HTTP_IDEMPOTENCY_KEY="cart-7")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(retry.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data["cart_display"], "grouped")
        self.assertEqual(first.data["pricing"]["base_price"], "51000.00")
        self.laundry.refresh_from_db()
        self.assertEqual(self.laundry.add_to_cart_count, 1)

    def test_add_to_cart_fixed_bundle(self):
        response = self.client.post(reverse("public-bundle-add-to-cart", args=["breakfast-set"]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data["lines"]), 2)

    def test_sold_out_bundle_cannot_be_added(self):
        Bundle.objects.filter(pk=self.breakfast.pk).update(stock_limit=3, stock_sold=3)

        response = self.client.post(reverse("public-bundle-add-to-cart", args=["breakfast-set"]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["availability_status"], "sold_out")

    def test_scheduled_bundle_reports_its_status(self):
        Bundle.objects.filter(pk=self.breakfast.pk).update(starts_at=timezone.now() + timedelta(days=1))

        response = self.client.post(reverse("public-bundle-calculate", args=["breakfast-set"]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["availability_status"], "scheduled")
