from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from clients.models import Client
from clients.views import ClientDetailView, ClientListCreateView
from subscriptions.models import Plan, Subscription

User = get_user_model()


class ClientApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="owner", password="x")
        self.other = User.objects.create_user(username="other", password="x")
        plan = Plan.objects.create(code="TEST_TWO_CLIENTS", name="Two", max_clients=2)
        Subscription.objects.create(user=self.user, plan=plan)

    def post(self, data, user=None):
        request = self.factory.post("/api/v1/clients/", data, format="json")
        force_authenticate(request, user=user or self.user)
        return ClientListCreateView.as_view()(request)

    def list(self, params=None, user=None):
        request = self.factory.get("/api/v1/clients/", params or {})
        force_authenticate(request, user=user or self.user)
        return ClientListCreateView.as_view()(request)

    def test_create_sets_owner(self):
        response = self.post({"name": "Ada", "company": "Acme", "client_type": "business", "country": "de"})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["display_name"], "Acme")
        self.assertEqual(response.data["country"], "DE")
        self.assertEqual(Client.objects.get(pk=response.data["id"]).user, self.user)

    def test_create_is_blocked_at_plan_limit(self):
        self.assertEqual(self.post({"name": "A"}).status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.post({"name": "B"}).status_code, status.HTTP_201_CREATED)

        response = self.post({"name": "C"})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "limit_exceeded")
        self.assertEqual(Client.objects.filter(user=self.user).count(), 2)

    def test_unknown_fields_are_rejected(self):
        response = self.post({"name": "Ada", "vip": True})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("vip", response.data)

    def test_list_is_scoped_and_searchable(self):
        Client.objects.create(user=self.user, name="Ada Lovelace", client_type="individual")
        Client.objects.create(user=self.user, name="Grace", company="Navy", client_type="business")
        Client.objects.create(user=self.other, name="Ada Other")

        names = [c["name"] for c in self.list().data["results"]]
        self.assertEqual(names, ["Ada Lovelace", "Grace"])

        names = [c["name"] for c in self.list({"q": "ada"}).data["results"]]
        self.assertEqual(names, ["Ada Lovelace"])

        names = [c["name"] for c in self.list({"client_type": "business"}).data["results"]]
        self.assertEqual(names, ["Grace"])

    def test_other_users_client_is_not_found(self):
        theirs = Client.objects.create(user=self.other, name="Hidden")
        request = self.factory.get(f"/api/v1/clients/{theirs.pk}")
        force_authenticate(request, user=self.user)
        response = ClientDetailView.as_view()(request, pk=theirs.pk)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
