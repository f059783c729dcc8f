"""Tests for DescriptorCache: memoization, flattening and instance access."""

import dataclasses
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import BaseModel, Field

from correlate.errors import TypeMismatch, UnknownField, UnknownMethod
from correlate.reflection.cache import DescriptorCache, get_default_cache


class Address(BaseModel):
    city: str = ""
    zip: str = ""


class Person(BaseModel):
    name: str = ""
    address: Address = Field(default_factory=Address)

    def greet(self, greeting: str) -> str:
        return f"{greeting}, {self.name}"


class Shouty(BaseModel):
    Name: str = ""
    Home: Address = Field(default_factory=Address)


class Holder(BaseModel):
    address: Address | None = None


class Counter(BaseModel):
    count: int = 0
    label: str = ""


class TreeNode(BaseModel):
    label: str = ""
    parent: "TreeNode | None" = None
    children: list["TreeNode"] = Field(default_factory=list)


@dataclasses.dataclass
class Employee:
    name: str = ""
    team: "Team | None" = None


@dataclasses.dataclass
class Team:
    title: str = ""
    lead: Employee | None = None


class TestMemoization:
    def test_describe_returns_same_object(self, cache):
        assert cache.describe(Person) is cache.describe(Person)

    def test_len_and_contains(self, cache):
        assert len(cache) == 0
        cache.describe(Person)
        assert len(cache) == 1
        assert Person in cache
        assert Address not in cache

    def test_flatten_memoized_per_separator(self, cache):
        assert cache.flatten(Person) is cache.flatten(Person)
        assert cache.flatten(Person) is not cache.flatten(Person, "/")

    def test_reset(self, cache):
        first = cache.flatten(Person)
        cache.reset()
        assert len(cache) == 0
        assert cache.flatten(Person) is not first
        assert cache.flatten(Person) == first

    def test_default_cache_is_shared(self):
        assert get_default_cache() is get_default_cache()

    def test_concurrent_first_use_returns_one_descriptor(self, cache):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: cache.describe(Person), range(32)))
        assert all(result is results[0] for result in results)


class TestFlatten:
    def test_nested_paths(self, cache):
        assert list(cache.flatten(Person)) == ["name", "address.city", "address.zip"]

    def test_leaf_chain(self, cache):
        entry = cache.flatten(Person)["address.city"]
        assert entry.chain == ("address", "city")
        assert entry.is_leaf
        assert entry.field.name == "city"

    def test_include_branches(self, cache):
        flattened = cache.flatten(Person, include_branches=True)
        assert list(flattened) == ["name", "address", "address.city", "address.zip"]
        assert not flattened["address"].is_leaf

    def test_custom_separator(self, cache):
        flattened = cache.flatten(Person, "/")
        assert list(flattened) == ["name", "address/city", "address/zip"]
        assert flattened["address/zip"].chain == ("address", "zip")

    def test_paths_normalized_but_chain_keeps_declared_names(self, cache):
        flattened = cache.flatten(Shouty)
        assert list(flattened) == ["name", "home.city", "home.zip"]
        assert flattened["home.city"].chain == ("Home", "city")

    def test_idempotent_across_caches(self, cache):
        assert cache.flatten(Person) == DescriptorCache().flatten(Person)

    def test_self_reference_terminates(self, cache):
        assert list(cache.flatten(TreeNode)) == ["label", "parent", "children"]
        assert cache.flatten(TreeNode)["parent"].is_leaf

    def test_mutual_reference_terminates(self, cache):
        assert list(cache.flatten(Employee)) == ["name", "team.title", "team.lead"]


class TestResolve:
    def test_case_insensitive_path(self, cache):
        entry = cache.resolve(Person, "Address.City")
        assert entry.path == "address.city"
        assert entry.chain == ("address", "city")

    def test_unknown_path(self, cache):
        with pytest.raises(UnknownField):
            cache.resolve(Person, "address.country")

    def test_path_through_primitive(self, cache):
        with pytest.raises(UnknownField):
            cache.resolve(Person, "name.first")

    @pytest.mark.parametrize("path", ["", ".", "address."])
    def test_empty_segment(self, cache, path):
        with pytest.raises(UnknownField):
            cache.resolve(Person, path)

    def test_branch_path(self, cache):
        entry = cache.resolve(Person, "address")
        assert entry.chain == ("address",)
        assert not entry.is_leaf


class TestGet:
    def test_nested_value(self, cache):
        person = Person(name="Ann", address=Address(city="NY"))
        assert cache.get(person, "Address.City") == "NY"

    def test_expected_type(self, cache):
        person = Person(name="Ann")
        assert cache.get(person, "name", str) == "Ann"
        with pytest.raises(TypeMismatch):
            cache.get(person, "name", int)

    def test_none_intermediate(self, cache):
        assert cache.get(Holder(), "address.city") is None

    def test_unknown_path(self, cache):
        with pytest.raises(UnknownField):
            cache.get(Person(), "age")


class TestSet:
    def test_creates_intermediate_shape(self, cache, codec):
        holder = Holder()
        cache.set(holder, "address.city", "NY", codec=codec)
        assert isinstance(holder.address, Address)
        assert holder.address.city == "NY"

    def test_string_coerced_to_int(self, cache, codec):
        counter = Counter()
        cache.set(counter, "count", "42", codec=codec)
        assert counter.count == 42

    def test_bad_string_is_type_mismatch(self, cache, codec):
        with pytest.raises(TypeMismatch):
            cache.set(Counter(), "count", "abc", codec=codec)

    def test_none_into_non_nullable_gives_zero(self, cache, codec):
        counter = Counter(count=5)
        cache.set(counter, "count", None, codec=codec)
        assert counter.count == 0

    def test_value_formatted_into_string(self, cache, codec):
        counter = Counter()
        cache.set(counter, "label", 5, codec=codec)
        assert counter.label == "5"

    def test_without_coercion(self, cache):
        counter = Counter()
        cache.set(counter, "count", "7", coerce=False)
        assert counter.count == "7"


class TestInvoke:
    def test_method_by_normalized_name(self, cache):
        assert cache.invoke(Person(name="Ann"), "GREET", "Hi") == "Hi, Ann"

    def test_unknown_method(self, cache):
        with pytest.raises(UnknownMethod):
            cache.invoke(Person(), "fly")
