from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from restinfront.client.http import FetchMixin
from restinfront.core.classes import InstanceMeta, OperationState
from restinfront.core.config import OPTION_NAMES, ModelConfig, Registry, build_model_config
from restinfront.core.exceptions import (CollectionOperationError,
                                         ConfigurationError,
                                         ValidationSyntaxError)
from restinfront.core.references import primary_key_of, resolve_reference
from restinfront.core.types import ErrorMap
from restinfront.core.validation import (build_validator, error_map_to_dict,
                                         validate_fields)

logger = logging.getLogger(__name__)

META_KEY = "_restinfront"
ITEMS_KEY = "_items"


def _noop(*args, **kwargs) -> None:
    return None


class Model(FetchMixin):
    """
    A schema-bound REST resource. An instance is either a single item (built
    from a dict) or an ordered collection of items (built from a list).

    Declare a model by subclassing::

        class User(Model):
            base_url = "https://api.example.com"
            endpoint = "users"
            schema = {
                "id": {"type": StringType(), "primary_key": True, "default_value": make_id},
                "email": {"type": StringType()},
            }

        user = User({"email": "jane@example.com"})   # new item, defaults filled
        users = User([])                              # empty collection
        await users.get({"limit": 50})
    """

    base_url: str = ""
    endpoint: str = ""
    collection_data_key: str = "rows"
    collection_count_key: str = "count"
    authentication: Optional[Callable[[], Any]] = None
    schema: Optional[Dict[str, Dict[str, Any]]] = None
    on_validation_error: Callable[..., Any] = staticmethod(_noop)
    on_fetch_error: Callable[..., Any] = staticmethod(_noop)
    transport: Any = None

    primary_key_fieldname: Optional[str] = None
    _config: Optional[ModelConfig] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._compile()
        Registry.register(cls.__name__, cls)

    # ------------------------------------------------------------------
    # Class configuration
    # ------------------------------------------------------------------

    @classmethod
    def _reserved_names(cls) -> List[str]:
        return [
            name
            for name in dir(cls)
            if not name.startswith("_") and name not in OPTION_NAMES
        ]

    @classmethod
    def _compile(cls) -> None:
        options = {name: getattr(cls, name) for name in OPTION_NAMES}
        cls._config = build_model_config(cls.__name__, options, cls._reserved_names())
        cls.primary_key_fieldname = cls._config.primary_key

    @classmethod
    def init(cls, **options):
        """
        Re-configure the model class.

        Accepted options: base_url, endpoint, collection_data_key,
        collection_count_key, authentication, schema, on_validation_error,
        on_fetch_error, transport.

        Raises:
            ConfigurationError: If an option is unknown or has the wrong type
            SchemaError: If the schema is invalid
        """
        unknown = set(options) - set(OPTION_NAMES)
        if unknown:
            raise ConfigurationError(
                f"Invalid configuration keys {sorted(unknown)} on {cls.__name__} model"
            )
        previous = {name: cls.__dict__[name] for name in options if name in cls.__dict__}
        for name, value in options.items():
            setattr(cls, name, value)
        try:
            cls._compile()
        except Exception:
            # Leave the class as it was
            for name in options:
                if name in previous:
                    setattr(cls, name, previous[name])
                else:
                    delattr(cls, name)
            raise
        return cls

    @classmethod
    def config(cls) -> ModelConfig:
        if cls._config is None:
            raise ConfigurationError(f"{cls.__name__} is abstract, subclass it to declare a model")
        return cls._config

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def _build_raw_item(cls, item: Mapping[str, Any]) -> Dict[str, Any]:
        """Every schema field, explicit values first, defaults otherwise."""
        config = cls.config()
        primary_key = config.primary_key

        # Resolved first, other defaults may depend on it
        primary_key_value = None
        if primary_key is not None:
            primary_key_value = item.get(primary_key)
            if primary_key_value is None:
                primary_key_value = config.schema[primary_key].default_value(None)

        raw_item = {}
        for fieldname, field_config in config.schema.items():
            if fieldname == primary_key:
                raw_item[fieldname] = primary_key_value
            elif fieldname in item:
                raw_item[fieldname] = item[fieldname]
            else:
                raw_item[fieldname] = field_config.default_value(primary_key_value)
        return raw_item

    def __init__(self, data: Any = None, *, is_new: bool = True, count: Optional[int] = None):
        config = type(self).config()
        meta = InstanceMeta()
        object.__setattr__(self, META_KEY, meta)

        if data is None:
            data = {}

        if isinstance(data, Mapping):
            meta.is_new = bool(is_new)
            meta.validator = build_validator(config.schema)
            meta.fetch.states.save = OperationState()

            if meta.is_new and config.has_schema:
                data = self._build_raw_item(data)

            options = {"is_new": meta.is_new}
            for fieldname, value in data.items():
                field_config = config.schema.get(fieldname)
                if field_config is not None:
                    setattr(self, fieldname, field_config.type.before_build(value, options))
                elif self._is_assignable(fieldname):
                    setattr(self, fieldname, value)
                else:
                    logger.warning(
                        "Dropped key %r on %s: it shadows the model runtime API",
                        fieldname,
                        type(self).__name__,
                    )

        elif isinstance(data, (list, tuple)):
            meta.is_collection = True
            object.__setattr__(self, ITEMS_KEY, [])
            for item in data:
                self.add(item, is_new=is_new)

            # After add(), which counts every item
            if count is not None:
                meta.count = count

        else:
            raise TypeError(
                f"{type(self).__name__} expects a dict or a list, got {type(data).__name__}"
            )

    @classmethod
    def _is_assignable(cls, key: Any) -> bool:
        return isinstance(key, str) and not key.startswith("_") and not hasattr(cls, key)

    def _iter_fields(self) -> Iterator:
        for key, value in vars(self).items():
            if key not in (META_KEY, ITEMS_KEY):
                yield key, value

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_collection(self) -> bool:
        return self._restinfront.is_collection

    @property
    def is_new(self) -> Optional[bool]:
        return self._restinfront.is_new

    @property
    def fetch_state(self):
        return self._restinfront.fetch.states

    def _allow_collection(self) -> None:
        if not self.is_collection:
            raise CollectionOperationError("This function MUST be called by a collection instance")

    def _deny_collection(self) -> None:
        if self.is_collection:
            raise CollectionOperationError("This function CANNOT be called by a collection instance")

    def _primary_key_value(self) -> Any:
        return primary_key_of(self, type(self).primary_key_fieldname)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        name = type(self).__name__
        if self.is_collection:
            return f"<{name} collection length={len(self)} count={self.count}>"
        primary_key = type(self).primary_key_fieldname
        if primary_key is None:
            return f"<{name}>"
        return f"<{name} {primary_key}={self._primary_key_value()!r}>"

    # ------------------------------------------------------------------
    # Server data
    # ------------------------------------------------------------------

    def _mutate_data(self, new_data: "Model") -> None:
        """
        Absorb a freshly fetched instance into this one, keeping the identity
        of this instance and of its nested instances.
        """
        meta = self._restinfront

        if new_data.is_collection:
            self._allow_collection()
            options = meta.fetch.options
            if options is not None and options.extend:
                for new_item in new_data.items():
                    self.add(new_item)
            else:
                object.__setattr__(self, ITEMS_KEY, list(new_data.items()))
            meta.count = new_data._restinfront.count
            return

        self._deny_collection()
        meta.is_new = new_data._restinfront.is_new
        current_fields = vars(self)
        for key, value in new_data._iter_fields():
            current = current_fields.get(key)
            if (
                isinstance(current, Model)
                and isinstance(value, Model)
                and current.is_collection == value.is_collection
            ):
                current._mutate_data(value)
            else:
                setattr(self, key, value)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def before_serialize(self, remove_invalid: bool = False) -> Any:
        """
        Plain data ready to be sent to the server.

        Args:
            remove_invalid: Leave out the fields that were checked and are invalid
        """
        options = {"remove_invalid": remove_invalid}
        if self.is_collection:
            return [item._before_serialize_item(options) for item in self.items()]
        return self._before_serialize_item(options)

    def _before_serialize_item(self, options: Dict[str, Any]) -> Dict[str, Any]:
        config = type(self).config()
        if not config.has_schema:
            return dict(self._iter_fields())

        remove_invalid = options.get("remove_invalid", False)
        current_fields = vars(self)
        new_item = {}

        for fieldname, validator in self._restinfront.validator.items():
            if fieldname not in current_fields:
                continue
            value = current_fields[fieldname]
            if remove_invalid and validator.checked and not validator.is_valid(value, self):
                continue
            new_item[fieldname] = config.schema[fieldname].type.before_serialize(value, options)

        return new_item

    def to_json(self) -> str:
        return json.dumps(self.before_serialize())

    def clone(self) -> "Model":
        """A new instance tree with the same data, sharing nothing with this one."""
        if self.is_collection:
            collection = type(self)([])
            for item in self.items():
                collection.add(item.clone())
            collection._restinfront.count = self._restinfront.count
            return collection
        return type(self)(self.before_serialize(), is_new=self.is_new)

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def items(self) -> List["Model"]:
        self._allow_collection()
        return getattr(self, ITEMS_KEY)

    def __len__(self) -> int:
        return len(self.items())

    def __iter__(self) -> Iterator["Model"]:
        return iter(self.items())

    def __getitem__(self, index):
        return self.items()[index]

    @property
    def count(self) -> int:
        """Total reported by the server, may exceed the number of loaded items."""
        self._allow_collection()
        return self._restinfront.count

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def has_more(self) -> bool:
        return len(self) < self.count

    @property
    def last(self) -> "Model":
        return self.items()[-1]

    def is_last(self, ref: Any) -> bool:
        """
        Whether ``ref`` designates the last item.

        Raises:
            IndexError: If the collection is empty
        """
        return resolve_reference(ref, type(self).primary_key_fieldname)(self.last)

    def _predicate(self, ref: Any):
        return resolve_reference(ref, type(self).primary_key_fieldname)

    def find(self, ref: Any) -> Optional["Model"]:
        predicate = self._predicate(ref)
        for item in self.items():
            if predicate(item):
                return item
        return None

    def exists(self, ref: Any) -> bool:
        return self.find(ref) is not None

    def add(self, item: Any = None, *, is_new: bool = True) -> "Model":
        """Append an item (an instance of this model, or data to build one)."""
        items = self.items()
        instance = item if isinstance(item, type(self)) else type(self)(item, is_new=is_new)
        items.append(instance)
        self._restinfront.count += 1
        return instance

    def remove(self, ref: Any) -> Optional["Model"]:
        """Remove the first matching item, return it or None."""
        items = self.items()
        predicate = self._predicate(ref)
        for index, item in enumerate(items):
            if predicate(item):
                self._restinfront.count -= 1
                return items.pop(index)
        return None

    def toggle(self, item: Any, callback: Optional[Callable[[Any], bool]] = None):
        """Remove the matching item if there is one, add ``item`` otherwise."""
        ref = callback or item
        if self.exists(ref):
            return self.remove(ref)
        return self.add(item)

    def clear(self) -> None:
        items = self.items()
        self._restinfront.count -= len(items)
        del items[:]

    def sort(self, key: Optional[Callable] = None, reverse: bool = False) -> List["Model"]:
        items = self.items()
        items.sort(key=key, reverse=reverse)
        return items

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validation_errors(self, field_list) -> ErrorMap:
        self._deny_collection()
        return validate_fields(self, field_list)

    def valid(self, field_list) -> bool:
        """
        Validate a list of fields, recursing into associations.

        Calls ``on_validation_error`` with the error map when a field is invalid.

        Raises:
            CollectionOperationError: If called on a collection
            ValidationSyntaxError: If the field list is malformed
        """
        self._deny_collection()

        if not isinstance(field_list, (list, tuple)):
            raise ValidationSyntaxError("valid: param MUST be a list")

        # A stale save failure must not outlive a new validation pass
        self._restinfront.fetch.states.save.reset()

        errors = validate_fields(self, field_list)
        if errors:
            logger.debug(
                "Validation failed on %s: %s",
                type(self).__name__,
                json.dumps(error_map_to_dict(errors), default=repr),
            )
            type(self).config().on_validation_error(errors)
        return not errors

    def error(self, fieldname: str) -> bool:
        """Whether a checked field is currently invalid."""
        validator = self._restinfront.validator.get(fieldname)
        if validator is None:
            return False
        return validator.checked and not validator.is_valid(getattr(self, fieldname, None), self)
