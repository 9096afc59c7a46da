"""
Lifecycle Controller Tests

🧪 save/remove on instances, find/find_all/count/remove_all on types,
and plugin application.
"""

import pytest

from starorm import Collection, Settings, ValidationError, create_model, set_settings


class TestSave:
    """Model.save()"""

    def test_save_without_adapter_clears_dirty(self, User, callback):
        user = User({"name": "alex"})
        assert user.save(callback) is user
        assert callback.calls == [(None,)]
        assert not user.is_dirty()

    def test_save_passes_changed_to_adapter(self, User, callback):
        calls = []

        def save(model, changed, done):
            calls.append((model, changed))
            done(None, {"id": 7, "unknown": True})

        User.adapter.save = save
        user = User({"name": "alex"})
        user.save(callback)

        assert calls == [(user, {"name": "alex"})]
        assert callback.error is None
        assert user.id == 7
        assert not user.is_dirty()

    def test_returned_attributes_merge_without_events(self, User, recorder):
        User.adapter.save = lambda model, changed, done: done(None, {"id": 7})
        user = User({"name": "alex"})
        recorder.listen(User, "change")

        user.save()

        assert recorder.events == []
        assert user.id == 7

    def test_clean_persisted_instance_skips_adapter(self, User, callback):
        user = User({"id": 1})
        user.save()

        saves = []
        User.adapter.save = lambda model, changed, done: saves.append(model)
        User.validators.append(lambda model, failures: saves.append("validated"))
        user.save(callback)

        assert saves == []
        assert callback.calls == [(None,)]

    def test_clean_save_still_emits_events(self, User, recorder):
        user = User({"id": 1})
        user.save()
        recorder.listen(User, "before save", "after save")

        user.save()

        assert recorder.names == ["before save", "after save"]

    def test_invalid_instance_never_reaches_adapter(self, callback):
        User = create_model("user").attr("id", primary=True).attr("name", required=True)
        saves = []
        User.adapter.save = lambda model, changed, done: saves.append(model)
        user = User({"id": 1})

        user.save(callback)

        assert saves == []
        err = callback.error
        assert isinstance(err, ValidationError)
        assert str(err) == "Validations failed."
        assert err.model is user
        assert [e.message for e in err.errors] == ["name is required."]
        assert user.is_dirty()

    def test_adapter_error_forwarded(self, User, callback, recorder):
        error = RuntimeError("disk full")
        User.adapter.save = lambda model, changed, done: done(error)
        user = User({"name": "alex"})
        recorder.listen(User, "after save")

        user.save(callback)

        assert callback.calls == [(error,)]
        assert user.is_dirty()
        assert recorder.events == []

    def test_save_events(self, User, recorder):
        user = User({"name": "alex"})
        recorder.listen(User, "before save", "after save")
        recorder.listen(user, "before save", "after save")

        user.save()

        assert recorder.events == [
            ("before save", (user, {"name": "alex"})),
            ("before save", ({"name": "alex"},)),
            ("after save", (user,)),
            ("after save", ()),
        ]

    def test_asynchronous_adapter(self, User, callback):
        pending = []
        User.adapter.save = lambda model, changed, done: pending.append(done)
        user = User({"name": "alex"})

        user.save(callback)
        assert not callback.called

        pending[0](None, {"id": 1})
        assert callback.calls == [(None,)]
        assert user.id == 1


class TestRemove:
    """Model.remove()"""

    def test_remove_calls_adapter_and_resets_primary(self, User, callback):
        removed = []

        def remove(model, done):
            removed.append(model.primary)
            done()

        User.adapter.remove = remove
        user = User({"id": 4, "name": "alex"})

        assert user.remove(callback) is user

        assert removed == [4]
        assert callback.calls == [(None,)]
        assert user.id is None
        assert user.is_new()
        assert user.name == "alex"

    def test_remove_without_adapter(self, User, callback):
        user = User({"id": 4})
        user.remove(callback)
        assert callback.error is None
        assert user.id is None

    def test_remove_error_keeps_primary(self, User, callback, recorder):
        error = RuntimeError("locked")
        User.adapter.remove = lambda model, done: done(error)
        user = User({"id": 4})
        recorder.listen(User, "after remove")

        user.remove(callback)

        assert callback.calls == [(error,)]
        assert user.id == 4
        assert recorder.events == []

    def test_remove_events(self, User, recorder):
        user = User({"id": 4})
        recorder.listen(User, "before remove", "after remove")
        recorder.listen(user, "before remove", "after remove")

        user.remove()

        assert recorder.events == [
            ("before remove", (user,)),
            ("before remove", ()),
            ("after remove", (user,)),
            ("after remove", ()),
        ]


class TestFind:
    """Model.find()"""

    def test_find_without_adapter(self, User, callback):
        assert User.find(1, callback) is User
        assert callback.calls == [(None, None)]

    def test_numeric_query_becomes_primary_key_query(self, User, callback):
        queries = []

        def find(model_type, query, done):
            queries.append((model_type, query))
            done(None, {"id": 1, "name": "alex"})

        User.adapter.find = find
        User.find(1, callback)

        assert queries == [(User, {"id": 1})]
        user = callback.results[0]
        assert isinstance(user, User)
        assert user.name == "alex"

    def test_numeric_query_uses_declared_primary_key(self, callback):
        Thing = create_model("thing").attr("uuid", primary=True)
        queries = []
        Thing.adapter.find = lambda model_type, query, done: (queries.append(query), done())
        Thing.find(3, callback)
        assert queries == [{"uuid": 3}]

    def test_find_error(self, User, callback):
        error = RuntimeError("test")
        User.adapter.find = lambda model_type, query, done: done(error)
        User.find({"name": "alex"}, callback)
        assert callback.calls == [(error, None)]

    def test_find_events(self, User, recorder):
        User.adapter.find = lambda model_type, query, done: done(None, {"id": 1})
        recorder.listen(User, "before find", "after find")

        User.find(1)

        assert recorder.names == ["before find", "after find"]
        assert recorder.args_of("before find") == [({"id": 1},)]
        assert recorder.args_of("after find")[0][0].id == 1

    def test_find_one_alias(self, User):
        assert User.find_one.__func__ is User.find.__func__


class TestFindAll:
    """Model.find_all()"""

    def test_empty_collection_without_adapter(self, User, callback):
        User.find_all(callback)

        err, collection = callback.args
        assert err is None
        assert isinstance(collection, Collection)
        assert list(collection) == []
        assert collection.total == 0
        assert collection.offset == 0
        assert collection.limit == 50
        assert collection.first() is None
        assert collection.last() is None

    def test_pagination_from_query(self, User, callback):
        User.find_all({"offset": 10, "limit": 5}, callback)
        collection = callback.results[0]
        assert (collection.offset, collection.limit) == (10, 5)

    def test_default_limit_from_settings(self, User, callback):
        set_settings(Settings(default_limit=20))
        User.find_all(callback)
        assert callback.results[0].limit == 20

    def test_rows_are_hydrated(self, User, callback):
        User.adapter.find_all = lambda model_type, query, done: done(
            None, [{"id": 1}, User({"id": 2})]
        )
        User.find_all({"name": "alex"}, callback)

        collection = callback.results[0]
        assert [user.id for user in collection] == [1, 2]
        assert all(isinstance(user, User) for user in collection)
        assert collection.total == 2
        assert collection.first().id == 1
        assert collection.last().id == 2

    def test_adapter_pagination_metadata_wins(self, User, callback):
        class Rows(list):
            total = 100
            offset = 20
            limit = 2

        User.adapter.find_all = lambda model_type, query, done: done(None, Rows([{"id": 1}]))
        User.find_all(callback)

        collection = callback.results[0]
        assert (collection.total, collection.offset, collection.limit) == (100, 20, 2)

    def test_find_all_error(self, User, callback):
        error = RuntimeError("test")
        User.adapter.find_all = lambda model_type, query, done: done(error)
        User.find_all(callback)
        assert callback.calls == [(error, None)]

    def test_find_all_events(self, User, recorder):
        recorder.listen(User, "before findAll", "after findAll")
        User.all({"name": "alex"})
        assert recorder.names == ["before findAll", "after findAll"]
        assert recorder.args_of("before findAll") == [({"name": "alex"},)]


class TestCountAndRemoveAll:
    """Model.count() and Model.remove_all()"""

    def test_count_without_adapter(self, User, callback):
        User.count(callback)
        assert callback.calls == [(None, 0)]

    def test_count_uses_adapter(self, User, callback, recorder):
        User.adapter.count = lambda model_type, query, done: done(None, 3)
        recorder.listen(User, "before count", "after count")

        User.count({"name": "alex"}, callback)

        assert callback.calls == [(None, 3)]
        assert recorder.events == [
            ("before count", ({"name": "alex"},)),
            ("after count", (3,)),
        ]

    def test_count_error_delivers_zero(self, User, callback):
        error = RuntimeError("test")
        User.adapter.count = lambda model_type, query, done: done(error)
        User.count(callback)
        assert callback.calls == [(error, 0)]

    def test_remove_all(self, User, callback, recorder):
        queries = []
        User.adapter.remove_all = lambda model_type, query, done: (queries.append(query), done())
        recorder.listen(User, "before removeAll", "after removeAll")

        User.remove_all({"name": "alex"}, callback)

        assert queries == [{"name": "alex"}]
        assert callback.calls == [(None,)]
        assert recorder.events == [
            ("before removeAll", ({"name": "alex"},)),
            ("after removeAll", ()),
        ]

    def test_remove_all_error(self, User, callback):
        error = RuntimeError("test")
        User.adapter.remove_all = lambda model_type, query, done: done(error)
        User.remove_all(callback)
        assert callback.calls == [(error,)]


class TestPlugins:
    """Model.use(), browser(), server()"""

    def test_use_calls_plugin_with_type_and_args(self, User):
        calls = []
        assert User.use(lambda model_type, *args: calls.append((model_type, args)), 1, 2) is User
        assert calls == [(User, (1, 2))]

    def test_plugin_can_extend_type(self, User):
        def timestamps(model_type):
            model_type.attr("created_at")

        User.use(timestamps)
        assert "created_at" in User.attributes

    @pytest.mark.parametrize("env,applied", [
        ("server", True),
        ("node", True),
        ("browser", False),
    ])
    def test_environment_scoped_plugin_on_server(self, User, env, applied):
        set_settings(Settings(environment="server"))
        calls = []
        User.use(env, calls.append)
        assert bool(calls) is applied

    def test_browser_and_server_shortcuts(self, User):
        set_settings(Settings(environment="browser"))
        calls = []

        User.browser(lambda model_type: calls.append("browser"))
        User.server(lambda model_type: calls.append("server"))

        assert calls == ["browser"]

    def test_environment_without_plugin_raises(self, User):
        with pytest.raises(TypeError):
            User.use("server")
