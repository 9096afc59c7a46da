"""
Attribute Registry Tests

🧪 Declaration, descriptors, defaults and custom getters.
"""

import pytest

from starorm import AttributeSpec, DuplicatePrimaryKeyError, create_model


class TestAttributeDeclaration:
    """Model.attr() semantics"""

    def test_attr_returns_model_type_for_chaining(self):
        User = create_model("user")
        assert User.attr("id", primary=True) is User
        assert list(User.attributes) == ["id"]

    def test_attr_sets_primary_key(self):
        User = create_model("user").attr("id", primary=True)
        assert User.primary_key == "id"

    def test_second_primary_key_raises(self):
        Post = create_model("post").attr("id", primary=True)

        with pytest.raises(DuplicatePrimaryKeyError, match="Primary attribute already exists: id") as info:
            Post.attr("uuid", primary=True)

        assert info.value.existing == "id"
        assert "uuid" not in Post.attributes

    def test_redeclaring_same_primary_is_ignored(self):
        """First definition wins, so redeclaring the primary key is a no-op."""
        Post = create_model("post").attr("id", primary=True)
        Post.attr("id", primary=True)
        assert Post.primary_key == "id"

    def test_first_definition_wins(self):
        User = create_model("user").attr("name", default="alex")
        User.attr("name", default="sam", required=True)

        spec = User.attributes["name"]
        assert spec.default == "alex"
        assert spec.required is False

    def test_attribute_event_fires_once(self, recorder):
        User = create_model("user")
        recorder.listen(User, "attribute")

        User.attr("name", required=True)
        User.attr("name")

        assert recorder.names == ["attribute"]
        name, spec = recorder.args_of("attribute")[0]
        assert name == "name"
        assert isinstance(spec, AttributeSpec)
        assert spec.required is True

    def test_spec_mapping_and_keywords_merge(self):
        User = create_model("user").attr("email", {"type": "string"}, format="email")
        spec = User.attributes["email"]
        assert spec.type == "string"
        assert spec.format == "email"
        assert spec.name == "email"

    def test_unknown_options_are_kept(self):
        User = create_model("user").attr("name", column="user_name")
        assert User.attributes["name"].column == "user_name"

    def test_attribute_spec_instance_accepted(self):
        User = create_model("user").attr("age", AttributeSpec(type=int, default=0))
        spec = User.attributes["age"]
        assert spec.type is int
        assert spec.has_default


class TestAttributeDescriptor:
    """Property access on instances and classes"""

    def test_class_access_returns_spec(self, User):
        assert isinstance(User.name, AttributeSpec)
        assert User.name is User.attributes["name"]

    def test_instance_access_reads_and_writes(self, User):
        user = User({"name": "alex"})
        assert user.name == "alex"

        user.name = "sam"
        assert user.name == "sam"
        assert user.get("name") == "sam"

    def test_undeclared_assignment_raises(self, User):
        user = User()
        with pytest.raises(AttributeError):
            user.nickname = "al"

    def test_shadowing_name_reachable_through_get_and_set(self):
        User = create_model("user").attr("save")
        user = User({"save": "yes"})

        assert callable(user.save)
        assert user.get("save") == "yes"
        user.set("save", "no")
        assert user.get("save") == "no"

    def test_custom_getter(self):
        User = create_model("user").attr("first").attr("last").attr(
            "full", get=lambda model: f"{model.first} {model.last}"
        )
        user = User({"first": "Ada", "last": "Lovelace"})
        assert user.full == "Ada Lovelace"
        assert user.to_dict()["full"] == "Ada Lovelace"

    def test_custom_getter_keeps_setter(self):
        User = create_model("user").attr("name", get=lambda model: "fixed")
        user = User()
        user.name = "other"
        assert user.name == "fixed"
        assert user.changed() == {"name": "fixed"}
        assert user.dirty == ["name"]


class TestDefaults:
    """Default values applied on construction"""

    def test_literal_default(self):
        User = create_model("user").attr("role", default="member")
        assert User().role == "member"

    def test_callable_default_evaluated_per_instance(self):
        User = create_model("user").attr("tags", default=list)
        first, second = User(), User()
        assert first.tags == []
        assert first.tags is not second.tags

    def test_explicit_value_beats_default(self):
        User = create_model("user").attr("role", default="member")
        assert User({"role": "admin"}).role == "admin"

    def test_explicit_none_beats_default(self):
        User = create_model("user").attr("role", default="member")
        assert User({"role": None}).role is None

    def test_defaults_are_dirty(self):
        User = create_model("user").attr("role", default="member").attr("name")
        user = User({"name": "alex"})
        assert user.dirty == ["role", "name"]

    def test_defaults_reach_adapter_save(self):
        User = create_model("user").attr("id", primary=True).attr("active", default=True)
        saved = []

        def save(model, changed, done):
            saved.append(changed)
            done()

        User.adapter.save = save
        User({"id": 1}).save()

        assert saved == [{"id": 1, "active": True}]

    def test_undeclared_attribute_starts_as_none(self, User):
        assert User().name is None
