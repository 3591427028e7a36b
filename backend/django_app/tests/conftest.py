import pytest


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(
        username="reader@example.com", email="reader@example.com", password="correct-horse",
    )


@pytest.fixture
def other_user(django_user_model):
    return django_user_model.objects.create_user(
        username="other@example.com", email="other@example.com", password="correct-horse",
    )


@pytest.fixture
def auth_client(client, user):
    client.force_login(user)
    return client
