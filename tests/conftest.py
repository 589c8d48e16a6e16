"""
Shared pytest fixtures.

Provides:
- An articles API declared as RouteSpecs (used across test modules)
- Flask app / client wired through FlaskRouteFactory
"""

import pytest
from flask import Flask

from apicontract import (
    ArraySchema,
    FieldSpec,
    FlaskRouteFactory,
    IntegerSchema,
    ObjectSchema,
    RequestBody,
    RequestSchemas,
    ResponseContract,
    RouteRegistry,
    RouteSpec,
    SchemaMode,
    StringSchema,
    optional,
)


ARTICLE = ObjectSchema(
    {
        "slug": StringSchema(),
        "title": StringSchema(min_length=1),
        "body": optional(StringSchema()),
    },
    name="Article",
)

ERROR = ObjectSchema({"message": StringSchema()}, name="Error")


def article_routes():
    """Fresh RouteSpecs for the articles API."""
    get_article = RouteSpec(
        method="GET",
        path="/articles/{slug}",
        request=RequestSchemas(path_params=ObjectSchema({"slug": StringSchema()})),
        responses={
            200: ResponseContract("The article", {"application/json": ObjectSchema({"articles": ArraySchema(ARTICLE)})}),
            404: ResponseContract("No such article", {"application/json": ERROR}),
        },
        summary="Fetch one article",
        tags=("articles",),
    )
    list_articles = RouteSpec(
        method="GET",
        path="/articles",
        request=RequestSchemas(query=ObjectSchema({
            "limit": FieldSpec(IntegerSchema(minimum=1, maximum=100, default=20)),
            "tag": optional(StringSchema()),
        })),
        responses={
            200: ResponseContract("Article page", {"application/json": ObjectSchema({
                "articles": ArraySchema(ARTICLE),
                "limit": IntegerSchema(),
            })}),
        },
        tags=("articles",),
    )
    create_article = RouteSpec(
        method="POST",
        path="/articles",
        request=RequestSchemas(body=RequestBody({"application/json": ObjectSchema({
            "title": StringSchema(min_length=1),
            "body": StringSchema(),
        })})),
        responses={
            201: ResponseContract("Created", {"application/json": ARTICLE}),
        },
        tags=("articles",),
    )
    return get_article, list_articles, create_article


ARTICLES = {"foo-bar": {"slug": "foo-bar", "title": "Foo Bar", "body": "Hello"}}


def get_article(input, h, next):
    article = ARTICLES.get(input.path_params["slug"])
    if article is None:
        return h.json({"message": "not found"}, status=404)
    return h.json({"articles": [article]})


def list_articles(input, h, next):
    limit = input.query["limit"]
    return h.json({"articles": list(ARTICLES.values())[:limit], "limit": limit})


def create_article(input, h, next):
    body = input.body
    slug = body["title"].lower().replace(" ", "-")
    return h.json({"slug": slug, "title": body["title"], "body": body["body"]}, status=201)


@pytest.fixture
def routes():
    return article_routes()


@pytest.fixture
def registry():
    return RouteRegistry()


@pytest.fixture
def app():
    """Flask app serving the articles API."""
    app = Flask(__name__)
    app.config['TESTING'] = True

    factory = FlaskRouteFactory(app, mode=SchemaMode.STRICT)
    spec_get, spec_list, spec_create = article_routes()
    factory.register(spec_get, get_article)
    factory.register(spec_list, list_articles)
    factory.register(spec_create, create_article)
    app.extensions["apicontract"] = factory
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
