from http import HTTPStatus

from django.urls import reverse
from drf_spectacular.generators import SchemaGenerator


def test_api_v1_schema_generated_successfully(client):
    response = client.get(reverse("api-schema-v1"))
    assert response.status_code == HTTPStatus.OK


def test_api_v1_docs_accessible_without_auth(client):
    response = client.get(reverse("api-docs-v1"))
    assert response.status_code == HTTPStatus.OK


def test_schema_tag_grouping():
    schema = SchemaGenerator().get_schema(request=None, public=True)
    paths = schema["paths"]
    assert "/api/v1/messages/" in paths
    for operation in paths["/api/v1/messages/"].values():
        assert operation["tags"] == ["Messages"]
    assert {"name": "Messages"} in schema["tags"]
