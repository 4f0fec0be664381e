from __future__ import annotations

import importlib
import importlib.util
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Tuple

from .decoder_base import Decoder
from .errors import UnknownParser

DecoderFactory = Callable[[Mapping[str, Any]], Decoder]


def freeze_config(value: Any) -> Hashable:
    """
    Turn a config value into a hashable structure with value equality.

    Dict key order does not matter, list and tuple are treated alike, so
    {"a": 1, "b": [1, 2]} and {"b": (1, 2), "a": 1} share one cache entry.
    """
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), freeze_config(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(freeze_config(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze_config(v) for v in value)
    return value


@dataclass
class RegisteredDecoder:
    """
    Wrapper for a registered decoder factory and the instances built from it.
    """
    name: str
    factory: DecoderFactory
    instances: Dict[Hashable, Decoder] = field(default_factory=dict)


class DecoderRegistry:
    """
    Holds decoder factories by name and caches the decoders built from them.

    Decoders are normally registered explicitly at startup, either with
    register() or from import strings:

      "some.module.path:factory_function"

    Example:
      "fsd_pipeline_mcp.decoders.fsd.decoder:build_decoder"

    load_from_directory() is an optional adapter for plugin files dropped
    into a folder. It uses the same register() path.
    """

    # Factory names recognised in plugin modules, checked in this order.
    # "create_{name}_decoder" is formatted with the module file stem.
    FACTORY_NAMES: Tuple[str, ...] = ("build_decoder", "create_decoder", "create_{name}_decoder")

    def __init__(self, log: Callable[[str], None] = print):
        self._log = log
        self._decoders: Dict[str, RegisteredDecoder] = {}

    def register(self, name: str, factory: DecoderFactory) -> None:
        if name in self._decoders:
            self._log(f"warning: decoder '{name}' already registered, overwriting")
        self._decoders[name] = RegisteredDecoder(name=name, factory=factory)

    def unregister(self, name: str) -> bool:
        return self._decoders.pop(name, None) is not None

    def has(self, name: str) -> bool:
        return name in self._decoders

    def create(self, name: str, config: Optional[Mapping[str, Any]] = None) -> Decoder:
        """
        Return the decoder for (name, config), building it on first use.

        init() runs once per distinct configuration.
        """
        entry = self._decoders.get(name)
        if entry is None:
            raise UnknownParser(name)

        cfg = dict(config or {})
        key = freeze_config(cfg)
        decoder = entry.instances.get(key)
        if decoder is not None:
            return decoder

        decoder = entry.factory(cfg)
        init = getattr(decoder, "init", None)
        if callable(init):
            init()

        entry.instances[key] = decoder
        return decoder

    def list(self) -> List[str]:
        return list(self._decoders.keys())

    def get_metadata(self, name: str) -> Optional[Dict[str, Any]]:
        if name not in self._decoders:
            return None
        decoder = self.create(name)
        metadata = getattr(decoder, "metadata", None)
        if callable(metadata):
            return metadata()
        return {"name": name}

    def clear_instances(self) -> None:
        for entry in self._decoders.values():
            entry.instances.clear()

    def load_from_import_paths(self, import_paths: List[str]) -> None:
        """
        Register decoders from "module:factory" strings. The decoder name is
        the module's DECODER_NAME, or else the name of a decoder built with
        an empty config. That decoder is kept as the cached instance for {}.
        """
        for path in import_paths:
            module_path, factory_name = path.split(":")
            module = importlib.import_module(module_path)
            factory = getattr(module, factory_name)
            name = getattr(module, "DECODER_NAME", None)
            if name:
                self.register(name, factory)
                continue

            decoder = factory({})
            init = getattr(decoder, "init", None)
            if callable(init):
                init()
            self.register(decoder.name, factory)
            self._decoders[decoder.name].instances[freeze_config({})] = decoder

    def load_from_directory(self, dir_path: str) -> int:
        """
        Import each *.py file in dir_path and register the ones exposing a
        recognised factory. Returns the number of decoders registered.

        A plugin that fails to import or inspect is logged and skipped.
        """
        if not os.path.isdir(dir_path):
            self._log(f"warning: decoder directory not found: {dir_path}")
            return 0

        loaded = 0
        for filename in sorted(os.listdir(dir_path)):
            stem, ext = os.path.splitext(filename)
            file_path = os.path.join(dir_path, filename)
            if ext != ".py" or stem.startswith("_") or not os.path.isfile(file_path):
                continue

            try:
                factory = self._load_plugin_factory(stem, file_path)
            except Exception as exc:
                self._log(f"error loading decoder from {filename}: {exc}")
                continue

            if factory is None:
                continue

            self.register(stem, factory)
            loaded += 1

        self._log(f"loaded {loaded} decoder(s) from {dir_path}")
        return loaded

    def _load_plugin_factory(self, stem: str, file_path: str) -> Optional[DecoderFactory]:
        spec = importlib.util.spec_from_file_location(f"fsd_pipeline_plugins.{stem}", file_path)
        if spec is None or spec.loader is None:
            return None

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        for candidate in self.FACTORY_NAMES:
            factory = getattr(module, candidate.format(name=stem), None)
            if callable(factory):
                return factory
        return None
