"""
Tests for the request lifecycle, against an in-process MockAPI.
"""
import asyncio
import unittest
from datetime import datetime, timezone
from unittest import mock

import httpx

from restinfront.client.http import REQUEST_TIMEOUT
from restinfront.client.testing import MockAPI
from restinfront.core.exceptions import (AuthenticationError,
                                         CollectionOperationError,
                                         ConfigurationError, FetchPayloadError,
                                         FetchStatusError)
from restinfront.core.field_types import NumberType, StringType
from restinfront.core.model import Model
from tests.test_app.models import Author, Post, Profile


class FetchTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.api = MockAPI()
        self.failures = []
        Post.init(
            base_url=self.api.base_url,
            transport=self.api.transport,
            authentication=None,
            on_fetch_error=self.failures.append,
        )


class CollectionGetTests(FetchTestCase):
    async def test_get_page(self):
        self.api.add("GET", "/posts", json={"rows": [{"id": "a"}, {"id": "b"}], "count": 50})
        posts = Post([])

        await posts.get()

        self.assertEqual(len(posts), 2)
        self.assertEqual(posts.count, 50)
        self.assertTrue(posts.has_more)
        self.assertFalse(posts[0].is_new)

        params = self.api.last_request.url.params
        self.assertEqual(params["limit"], "20")
        self.assertEqual(params["offset"], "0")

        state = posts.fetch_state
        self.assertTrue(state.succeeded)
        self.assertTrue(state.succeeded_once)
        self.assertTrue(state.get.succeeded)
        self.assertFalse(state.progressing)
        self.assertFalse(state.get.progressing)
        self.assertIsNone(state.save)

    async def test_get_more_extends_the_collection(self):
        self.api.add("GET", "/posts", json={"rows": [{"id": "a"}, {"id": "b"}], "count": 50})
        self.api.add("GET", "/posts", json={"rows": [{"id": "c"}, {"id": "d"}], "count": 50})
        posts = Post([])
        await posts.get()
        first, second = posts[0], posts[1]

        await posts.get_more()

        self.assertEqual(self.api.last_request.url.params["offset"], "20")
        self.assertEqual([post.id for post in posts], ["a", "b", "c", "d"])
        self.assertIs(posts[0], first)
        self.assertIs(posts[1], second)
        self.assertEqual(posts.count, 50)

    async def test_get_replaces_the_collection(self):
        self.api.add("GET", "/posts", json={"rows": [{"id": "a"}], "count": 1})
        posts = Post([{"id": "local"}])
        await posts.get()
        self.assertEqual([post.id for post in posts], ["a"])

    async def test_search_params(self):
        self.api.add("GET", "/posts", json=[])
        posts = Post([])

        await posts.get(
            {
                "q": "hello world",
                "since": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
                "author": None,
                "limit": 5,
            }
        )

        url = self.api.last_request.url
        self.assertEqual(url.params["q"], "hello world")
        self.assertEqual(url.params["since"], "2024-01-02T03:04:05.000Z")
        self.assertEqual(url.params["limit"], "5")
        self.assertNotIn("author", url.params)

    async def test_pathname_and_search_params(self):
        self.api.add("GET", "/posts/drafts", json=[])
        await Post([]).get("drafts", {"offset": 40})
        self.assertEqual(self.api.last_request.url.params["offset"], "40")

    async def test_plain_list_response(self):
        self.api.add("GET", "/posts", json=[{"id": "a"}, {"id": "b"}])
        posts = Post([])
        await posts.get()
        self.assertEqual(len(posts), 2)
        self.assertEqual(posts.count, 2)
        self.assertFalse(posts.has_more)

    async def test_get_more_requires_a_previous_get(self):
        with self.assertRaises(ConfigurationError):
            await Post([]).get_more()

    async def test_get_more_on_an_item(self):
        with self.assertRaises(CollectionOperationError):
            await Post().get_more()

    async def test_custom_collection_keys(self):
        class Event(Model):
            endpoint = "events"
            collection_data_key = "data"
            collection_count_key = "total"
            schema = {"id": {"type": NumberType(), "primary_key": True}}

        Event.init(base_url=self.api.base_url, transport=self.api.transport)
        self.api.add("GET", "/events", json={"data": [{"id": 1}], "total": 9})

        events = Event([])
        await events.get()
        self.assertEqual(events.count, 9)
        self.assertEqual(events[0].id, 1)


class ItemGetTests(FetchTestCase):
    async def test_get_item(self):
        self.api.add(
            "GET",
            "/posts/abc",
            json={"id": "abc", "title": "Hello", "author": {"id": "u1", "name": "Jane"}},
        )
        post = Post({})

        await post.get("abc")

        self.assertEqual(str(self.api.last_request.url), "https://api.test/posts/abc")
        self.assertEqual(post.id, "abc")
        self.assertEqual(post.title, "Hello")
        self.assertFalse(post.is_new)
        self.assertIsInstance(post.author, Author)
        self.assertTrue(post.fetch_state.get.succeeded)

    async def test_refetch_keeps_nested_identity(self):
        self.api.add("GET", "/posts/abc", json={"id": "abc", "author": {"id": "u1", "name": "Jane"}})
        self.api.add("GET", "/posts/abc", json={"id": "abc", "author": {"id": "u1", "name": "Janet"}})
        post = Post({})
        await post.get("abc")
        author = post.author

        await post.get("abc")

        self.assertIs(post.author, author)
        self.assertEqual(author.name, "Janet")

    async def test_pathname_is_required(self):
        with self.assertRaises(ConfigurationError):
            await Post().get()
        with self.assertRaises(ConfigurationError):
            await Post().get({"q": "x"})

    async def test_headers(self):
        self.api.add("GET", "/posts/abc", json={"id": "abc"})
        await Post().get("abc")
        headers = self.api.last_request.headers
        self.assertEqual(headers["content-type"], "application/json")
        self.assertNotIn("authorization", headers)

    async def test_endpoint_is_required(self):
        with self.assertRaises(ConfigurationError):
            await Profile().get("abc")


class FailureTests(FetchTestCase):
    async def test_error_status(self):
        self.api.add("GET", "/posts/abc", status_code=500, json={"detail": "boom"})
        post = Post({"id": "abc", "title": "Keep"})

        await post.get("abc")

        self.assertEqual(post.title, "Keep")
        self.assertTrue(post.is_new)
        self.assertTrue(post.fetch_state.failed)
        self.assertTrue(post.fetch_state.get.failed)
        self.assertFalse(post.fetch_state.get.succeeded)
        self.assertFalse(post.fetch_state.get.progressing)

        failure = self.failures[0]
        self.assertIsInstance(failure.error, FetchStatusError)
        self.assertEqual(failure.error.status_code, 500)
        self.assertEqual(failure.status_code, 500)
        self.assertIs(failure.instance, post)

    async def test_timeout(self):
        self.api.add("GET", "/posts/abc", json={"id": "abc", "title": "Late"}, delay=1)
        post = Post({"id": "abc", "title": "Keep"})

        with mock.patch("restinfront.client.http.REQUEST_TIMEOUT", 0.05):
            await post.get("abc")

        self.assertEqual(post.title, "Keep")
        self.assertTrue(post.is_new)
        self.assertTrue(post.fetch_state.get.failed)
        self.assertIsInstance(self.failures[0].error, asyncio.TimeoutError)
        self.assertIsNone(self.failures[0].response)

    async def test_transport_deadline_matches_the_request_timeout(self):
        timeouts = []

        def capture(request):
            timeouts.append(request.extensions["timeout"])
            return httpx.Response(200, json={"id": "abc"})

        self.api.add("GET", "/posts/abc", handler=capture)
        post = Post({})

        await post.get("abc")

        self.assertTrue(post.fetch_state.get.succeeded)
        for phase in ("connect", "read", "write", "pool"):
            self.assertGreaterEqual(timeouts[0][phase], REQUEST_TIMEOUT)
        self.assertEqual(REQUEST_TIMEOUT, 20.0)

    async def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        self.api.add("GET", "/posts/abc", handler=refuse)
        post = Post({"id": "abc"})

        await post.get("abc")

        self.assertTrue(post.fetch_state.failed)
        self.assertIsInstance(self.failures[0].error, httpx.ConnectError)

    async def test_malformed_body(self):
        self.api.add(
            "GET", "/posts/abc", handler=lambda request: httpx.Response(200, content=b"{not json")
        )
        post = Post({"id": "abc"})
        await post.get("abc")
        self.assertTrue(post.fetch_state.failed)

    async def test_scalar_body_on_an_item(self):
        self.api.add("PATCH", "/posts/abc", json=True)
        self.api.add("GET", "/posts/abc", json="ok")
        post = Post({"id": "abc", "title": "Keep"}, is_new=False)

        await post.patch()
        await post.get("abc")

        self.assertEqual(post.title, "Keep")
        self.assertTrue(post.fetch_state.save.failed)
        self.assertFalse(post.fetch_state.save.succeeded)
        self.assertFalse(post.fetch_state.save.progressing)
        self.assertTrue(post.fetch_state.get.failed)
        self.assertFalse(post.fetch_state.succeeded_once)
        self.assertEqual(len(self.failures), 2)
        for failure in self.failures:
            self.assertIsInstance(failure.error, FetchPayloadError)
            self.assertEqual(failure.status_code, 200)

    async def test_list_body_on_an_item(self):
        self.api.add("GET", "/posts/abc", json=[{"id": "abc"}])
        post = Post({"id": "abc", "title": "Keep"})

        await post.get("abc")

        self.assertEqual(post.title, "Keep")
        self.assertTrue(post.fetch_state.get.failed)
        self.assertIsInstance(self.failures[0].error, FetchPayloadError)

    async def test_collection_body_missing_the_count_key(self):
        self.api.add("GET", "/posts", json={"rows": [{"id": "a"}]})
        posts = Post([{"id": "local"}])

        await posts.get()

        self.assertEqual([post.id for post in posts], ["local"])
        self.assertTrue(posts.fetch_state.failed)
        self.assertFalse(posts.fetch_state.succeeded)
        self.assertFalse(posts.fetch_state.progressing)
        self.assertIsInstance(self.failures[0].error, FetchPayloadError)

    async def test_collection_body_with_scalar_items(self):
        self.api.add("GET", "/posts", json={"rows": [1, 2], "count": 2})
        posts = Post([])

        await posts.get()

        self.assertTrue(posts.is_empty)
        self.assertTrue(posts.fetch_state.get.failed)
        self.assertIsInstance(self.failures[0].error, FetchPayloadError)

    async def test_failure_does_not_reset_succeeded_once(self):
        self.api.add("GET", "/posts/abc", json={"id": "abc", "title": "Hello"})
        self.api.add("GET", "/posts/abc", status_code=404)
        post = Post({})

        await post.get("abc")
        await post.get("abc")

        self.assertTrue(post.fetch_state.succeeded_once)
        self.assertFalse(post.fetch_state.succeeded)
        self.assertTrue(post.fetch_state.failed)
        self.assertEqual(post.title, "Hello")

    async def test_next_call_leaves_the_failed_state(self):
        self.api.add("GET", "/posts/abc", status_code=503)
        self.api.add("GET", "/posts/abc", json={"id": "abc"})
        post = Post({})

        await post.get("abc")
        await post.get("abc")

        self.assertFalse(post.fetch_state.failed)
        self.assertTrue(post.fetch_state.get.succeeded)


class SaveTests(FetchTestCase):
    async def test_save_new_item_posts(self):
        self.api.add("POST", "/posts", status_code=201, json={"id": "abc", "title": "Hello"})
        post = Post({"id": "abc", "title": "Hello", "views": "many"})
        post.valid(["title", "views"])

        await post.save()

        request = self.api.last_request
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/posts")
        body = MockAPI.json_body(request)
        self.assertEqual(body["title"], "Hello")
        self.assertNotIn("views", body)
        # Unchecked fields are sent
        self.assertIn("published", body)

        self.assertFalse(post.is_new)
        self.assertTrue(post.fetch_state.save.succeeded)
        self.assertFalse(post.fetch_state.get.succeeded)

    async def test_save_persisted_item_puts(self):
        self.api.add("PUT", "/posts/abc", json={"id": "abc", "title": "Updated"})
        post = Post({"id": "abc", "title": "Updated"}, is_new=False)

        await post.save()

        self.assertEqual(self.api.last_request.method, "PUT")
        self.assertEqual(self.api.last_request.url.path, "/posts/abc")
        self.assertTrue(post.fetch_state.save.succeeded)

    async def test_save_then_save_again(self):
        self.api.add("POST", "/posts", json={"id": "abc"})
        self.api.add("PUT", "/posts/abc", json={"id": "abc"})
        post = Post({"id": "abc"})

        await post.save()
        await post.save()

        self.assertEqual([request.method for request in self.api.requests], ["POST", "PUT"])

    async def test_failed_save_keeps_the_item_new(self):
        self.api.add("POST", "/posts", status_code=400, json={"title": ["required"]})
        post = Post({"id": "abc"})

        await post.save()

        self.assertTrue(post.is_new)
        self.assertTrue(post.fetch_state.save.failed)
        self.assertFalse(post.fetch_state.get.failed)

    async def test_patch_with_pathname(self):
        self.api.add("PATCH", "/posts/abc/publish", json={"id": "abc", "published": True})
        post = Post({"id": "abc"}, is_new=False)

        await post.patch("publish")

        self.assertTrue(post.published)

    async def test_delete_without_content(self):
        self.api.add("DELETE", "/posts/abc", status_code=204)
        post = Post({"id": "abc", "title": "Bye"}, is_new=False)

        await post.delete()

        self.assertEqual(self.api.last_request.method, "DELETE")
        self.assertIsNone(MockAPI.json_body(self.api.last_request))
        self.assertTrue(post.fetch_state.save.succeeded)
        self.assertEqual(post.title, "Bye")

    async def test_item_operations_on_a_collection(self):
        posts = Post([])
        for operation in (posts.post, posts.put, posts.patch, posts.delete, posts.save):
            with self.assertRaises(CollectionOperationError):
                await operation()
        with self.assertRaises(CollectionOperationError):
            await posts.fetch("POST")


class AuthenticationTests(FetchTestCase):
    async def test_bearer_token(self):
        async def token():
            return "s3cret"

        Post.init(authentication=token)
        self.api.add("GET", "/posts/abc", json={"id": "abc"})

        await Post().get("abc")

        self.assertEqual(self.api.last_request.headers["authorization"], "Bearer s3cret")

    async def test_sync_provider(self):
        Post.init(authentication=lambda: "plain")
        self.api.add("GET", "/posts/abc", json={"id": "abc"})

        await Post().get("abc")

        self.assertEqual(self.api.last_request.headers["authorization"], "Bearer plain")

    async def test_invalid_token(self):
        async def token():
            return None

        Post.init(authentication=token)
        post = Post()

        await post.get("abc")

        self.assertEqual(self.api.requests, [])
        self.assertTrue(post.fetch_state.failed)
        self.assertIsInstance(self.failures[0].error, AuthenticationError)
        self.assertFalse(post.fetch_state.get.progressing)

    async def test_provider_error(self):
        async def token():
            raise RuntimeError("session expired")

        Post.init(authentication=token)
        post = Post()

        await post.get("abc")

        self.assertEqual(self.api.requests, [])
        self.assertTrue(post.fetch_state.get.failed)
        error = self.failures[0].error
        self.assertIsInstance(error, AuthenticationError)
        self.assertIsInstance(error.__cause__, RuntimeError)
        self.assertIn("session expired", str(error))


class ConcurrentInstancesTests(FetchTestCase):
    async def test_instances_fetch_independently(self):
        self.api.add("GET", "/posts/a", json={"id": "a", "title": "A"}, delay=0.01)
        self.api.add("GET", "/posts/b", json={"id": "b", "title": "B"})
        first, second = Post(), Post()

        await asyncio.gather(first.get("a"), second.get("b"))

        self.assertEqual((first.title, second.title), ("A", "B"))


class SchemalessModelTests(unittest.IsolatedAsyncioTestCase):
    async def test_payload_is_kept_as_is(self):
        api = MockAPI()
        api.add("GET", "/settings/site", json={"theme": "dark", "beta": True})

        class Setting(Model):
            endpoint = "settings"

        Setting.init(base_url=api.base_url, transport=api.transport)
        setting = Setting({})
        await setting.get("site")

        self.assertEqual(setting.theme, "dark")
        self.assertEqual(setting.before_serialize(), {"theme": "dark", "beta": True})


class MissingPrimaryKeyTests(unittest.TestCase):
    def test_model_without_primary_key_degrades(self):
        with self.assertWarns(UserWarning):

            class Note(Model):
                endpoint = "notes"
                schema = {"text": {"type": StringType()}}

        notes = Note([{"text": "a"}])
        # Every item has a None primary key
        self.assertFalse(notes.exists("anything"))
        self.assertIs(notes.find({"text": "b"}), notes[0])
