"""Dispatcher - registers plugins and runs them in their mode

# Discrete mode

`run_discrete(name, raw_inputs)` hands the plugin one buffer per declared
argument and returns a DiscreteResult holding either the Output records or
an error message, never both. Nothing outlives the call.

# Streaming mode

`prepare_streaming(name)` returns a StreamingRunBuilder. Arguments are set
to fixed values or bound to another run's output, then `start()` creates
one input per argument, invokes `run` on its own thread and returns the
StreamingRun. The resources stay live after `run` returns, until
`teardown()`.

# Reactive propagation

`watch(name, initial)` wraps a discrete plugin in a ReactiveInvocation:
input changes are collected from the inputs' change feeds and `pump()`
re-runs the plugin once per batch of changes. A plugin whose schema
performs state changes is never re-run this way, only by `trigger()`.

Nothing here retries a failed run.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from plugstream.capabilities import Capabilities
from plugstream.config import RuntimeConfig
from plugstream.datastream import CapacityError, DataStreamType, StreamClosedError, StreamError, UnknownNodeError
from plugstream.events import ListChangeKind, TreeChangeKind
from plugstream.plugin import DiscretePlugin, Output, Plugin, PluginError, StreamingPlugin
from plugstream.schema import ArgumentSpec, Schema, SchemaRegistry
from plugstream.streaming import (
    Input,
    InputHandle,
    OutputHandle,
    PluginContext,
    ResourceHandle,
    ResourceRole,
    ResourceTable,
    UnknownResourceError,
    ValueInput,
    host_handle,
)
from plugstream.validation import ArgumentValidationError, SchemaValidator


logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Base error for plugin registration and dispatch"""
    pass


class UnknownPluginError(DispatchError):
    def __init__(self, name: str):
        super().__init__(f"No plugin registered under '{name}'")
        self.name = name


class WrongModeError(DispatchError):
    """Discrete call on a streaming plugin or the other way round"""

    def __init__(self, name: str, expected: str):
        super().__init__(f"Plugin '{name}' is not a {expected} plugin")
        self.name = name
        self.expected = expected


class DuplicatePluginError(DispatchError):
    def __init__(self, name: str):
        super().__init__(f"A plugin named '{name}' is already registered")
        self.name = name


class UnknownArgumentError(DispatchError):
    def __init__(self, plugin: str, argument: str):
        super().__init__(f"Plugin '{plugin}' has no argument '{argument}'")
        self.plugin = plugin
        self.argument = argument


class BindingError(DispatchError):
    """Output and input cannot be bound"""
    pass


@dataclass(frozen=True)
class DiscreteResult:
    """Outcome of a discrete run: outputs or an error, never both"""

    outputs: Optional[List[Output]] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, outputs: List[Output]) -> "DiscreteResult":
        return cls(outputs=list(outputs))

    @classmethod
    def failure(cls, error: str) -> "DiscreteResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RunResult:
    """What a streaming `run` returned: its status message or its error"""

    ok: bool
    message: str


@dataclass(frozen=True)
class _Registration:
    plugin: Plugin
    schema: Schema

    @property
    def streaming(self) -> bool:
        return isinstance(self.plugin, StreamingPlugin)


def _describe_failure(e: Exception) -> str:
    return f"{type(e).__name__}: {e}"


# =============================================================================
# Bindings
# =============================================================================

class Binding:
    """Feeds one output into one input of the same shape

    Changes of the source output are replayed on the target input, and the
    target's load-more/load-children requests are passed back to the
    source. Bound outputs belong to the binding: nothing else may consume
    their change feed.
    """

    def __init__(self, source: ResourceHandle, target: ResourceHandle):
        if source.metadata.role is not ResourceRole.OUTPUT or target.metadata.role is not ResourceRole.INPUT:
            raise BindingError("A binding goes from an output to an input")
        if source.metadata.kind is not target.metadata.kind:
            raise BindingError(
                f"Cannot bind {source.metadata.kind.value} output '{source.name}' "
                f"to {target.metadata.kind.value} input '{target.name}'"
            )
        self.source = source
        self.target = target
        self.kind = source.metadata.kind
        self._threads: List[threading.Thread] = []

    def start(self, apply_baseline: bool = True) -> None:
        """Start forwarding.

        With apply_baseline the target is first set to the source's current
        snapshot; without it the caller already initialized the target from
        `source.resync()`.
        """
        if apply_baseline:
            self._apply_baseline(self.source.resync())
        self._spawn(self._forward_changes, "changes")
        if self.kind is not DataStreamType.VALUE:
            self._spawn(self._forward_requests, "requests")
        logger.debug("Bound output %r to input %r", self.source.name, self.target.name)

    def stop(self) -> None:
        self.source.close()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def _spawn(self, target, suffix: str) -> None:
        thread = threading.Thread(
            target=target,
            name=f"plugstream-binding-{self.source.name}-{suffix}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _apply_baseline(self, snapshot) -> None:
        if self.kind is DataStreamType.VALUE:
            if snapshot is None:
                self.target.clear()
            else:
                self.target.set(snapshot)
        elif self.kind is DataStreamType.LIST:
            self.target.replace(snapshot)
            has_more = self.source.has_more
            if has_more is not None:
                self.target.set_has_more(has_more)
        else:
            self.target.replace(snapshot)

    def _apply(self, change) -> None:
        if self.kind is DataStreamType.VALUE:
            if change.value is None:
                self.target.clear()
            else:
                self.target.set(change.value)
        elif self.kind is DataStreamType.LIST:
            if change.kind is ListChangeKind.REPLACE:
                self.target.replace(list(change.items))
            elif change.kind is ListChangeKind.APPEND:
                self.target.append(change.item)
            elif change.kind is ListChangeKind.POP:
                self.target.pop()
            elif change.kind is ListChangeKind.HAS_MORE_PAGES:
                self.target.set_has_more(change.has_more)
        else:
            if change.kind is TreeChangeKind.REPLACE:
                self.target.replace(list(change.nodes))
            elif change.kind is TreeChangeKind.APPEND:
                self.target.append(list(change.nodes))
            elif change.kind is TreeChangeKind.REMOVE:
                for node_id in change.ids:
                    # descendants leave together with the first removed id
                    try:
                        self.target.remove(node_id)
                    except UnknownNodeError:
                        continue

    def _forward_changes(self) -> None:
        while True:
            try:
                change = self.source.poll_update_blocking()
            except StreamClosedError:
                break
            try:
                self._apply(change)
            except StreamError as e:
                logger.warning("Binding %r -> %r stopped: %s", self.source.name, self.target.name, e)
                break
        self.source.close()

    def _forward_requests(self) -> None:
        while True:
            request = self.target.poll_request_blocking()
            if request.is_close():
                break
            if self.kind is DataStreamType.LIST:
                self.source.load_more(request.limit)
            else:
                self.source.request_children(request.parent)
        self.source.close()


# =============================================================================
# Streaming runs
# =============================================================================

class StreamingRun:
    """One invocation of a streaming plugin and the resources it owns"""

    def __init__(self, registration: _Registration, context: PluginContext, inputs: List[Input]):
        self.schema = registration.schema
        self.name = registration.schema.name
        self.context = context
        self.inputs = inputs
        self._plugin = registration.plugin
        self._bindings: List[Binding] = []
        self._result: Optional[RunResult] = None
        self._done = threading.Event()
        self._torn_down = False
        self._thread = threading.Thread(target=self._execute, name=f"plugstream-run-{self.name}", daemon=True)

    @property
    def table(self) -> ResourceTable:
        return self.context.table

    @property
    def resource_changes(self):
        """Feed of ResourceChange records for resources added and destroyed

        Subscribes on first access, starting with the live resources. The
        caller drains it; nothing is recorded for runs nobody watches.
        """
        return self.context.table.watch_changes()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def _start(self) -> None:
        self.context.start()
        logger.debug("Starting streaming run of %r", self.name)
        self._thread.start()

    def _execute(self) -> None:
        try:
            message = self._plugin.run(self.context, list(self.inputs))
            if isinstance(message, str):
                result = RunResult(True, message)
            else:
                result = RunResult(False, f"Plugin returned {type(message).__name__}, expected a status message")
        except PluginError as e:
            result = RunResult(False, e.message)
        except Exception as e:
            logger.exception("Streaming plugin %r raised", self.name)
            result = RunResult(False, _describe_failure(e))

        if result.ok:
            logger.debug("Streaming run of %r returned: %s", self.name, result.message)
        else:
            logger.warning("Streaming run of %r failed: %s", self.name, result.message)
        self._result = result
        self._done.set()

    def result(self, timeout: Optional[float] = None) -> RunResult:
        """Wait for `run` to return.

        Raises:
            TimeoutError: If `run` is still executing after timeout seconds
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"Streaming run of '{self.name}' still running")
        return self._result

    def input_handle(self, name: str) -> InputHandle:
        metadata = self.table.find(name, ResourceRole.INPUT)
        if metadata is None:
            raise UnknownResourceError(name)
        return host_handle(self.table, metadata)

    def output_handle(self, name: str, timeout: Optional[float] = 0) -> OutputHandle:
        """Host handle of an output, waiting up to timeout for the plugin to add it

        Raises:
            UnknownResourceError: If no such output exists in time
        """
        metadata = self.table.wait_for(name, ResourceRole.OUTPUT, timeout)
        if metadata is None:
            raise UnknownResourceError(name)
        return host_handle(self.table, metadata)

    def outputs(self) -> List[OutputHandle]:
        return self.context.host_handles(ResourceRole.OUTPUT)

    def bind(self, input_name: str, source: "StreamingRun", output_name: str,
             timeout: Optional[float] = 0) -> Binding:
        """Feed an output of another run into one of this run's inputs."""
        binding = Binding(source.output_handle(output_name, timeout), self.input_handle(input_name))
        binding.start()
        self._bindings.append(binding)
        return binding

    def teardown(self, wait: Optional[float] = None) -> None:
        """Destroy every resource of this run. Idempotent.

        Blocked polls on either side return their closed result. With wait,
        also give `run` that long to return.
        """
        if self._torn_down:
            return
        self._torn_down = True
        self.context.close()
        for binding in self._bindings:
            binding.stop()
        count = self.table.destroy_all()
        logger.debug("Tore down streaming run of %r (%d resources)", self.name, count)
        if wait is not None:
            self._thread.join(wait)

    def __enter__(self) -> "StreamingRun":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()


class StreamingRunBuilder:
    """Configures the arguments of a streaming run before it starts"""

    def __init__(self, dispatcher: "Dispatcher", registration: _Registration):
        self._dispatcher = dispatcher
        self._registration = registration
        self._values: Dict[str, Optional[bytes]] = {}
        self._lists: Dict[str, Tuple[List[bytes], Optional[bool]]] = {}
        self._bindings: Dict[str, Tuple[StreamingRun, str, Optional[float]]] = {}
        self._started = False

    @property
    def schema(self) -> Schema:
        return self._registration.schema

    def _spec(self, name: str) -> ArgumentSpec:
        spec = self.schema.argument(name)
        if spec is None:
            raise UnknownArgumentError(self.schema.name, name)
        return spec

    def set_value_argument(self, name: str, value: Optional[bytes]) -> "StreamingRunBuilder":
        spec = self._spec(name)
        if spec.data_type.is_list():
            raise DispatchError(f"Argument '{name}' is a list argument")
        if value is not None and self._dispatcher.config.validate_arguments:
            self._dispatcher.validator.validate_buffer(name, spec.data_type, value)
        self._values[name] = value
        self._bindings.pop(name, None)
        return self

    def set_list_argument(
        self, name: str, items: List[bytes], has_more: Optional[bool] = None
    ) -> "StreamingRunBuilder":
        spec = self._spec(name)
        if not spec.data_type.is_list():
            raise DispatchError(f"Argument '{name}' is not a list argument")
        if self._dispatcher.config.validate_arguments:
            self._dispatcher.validator.validate_items(name, spec.data_type, items)
        self._lists[name] = (list(items), has_more)
        self._bindings.pop(name, None)
        return self

    def bind_argument(
        self, name: str, source: StreamingRun, output_name: str, timeout: Optional[float] = 0
    ) -> "StreamingRunBuilder":
        """Feed the argument from an output of a running plugin.

        The output must exist by `start()`, or appear within timeout seconds.
        """
        self._spec(name)
        self._values.pop(name, None)
        self._lists.pop(name, None)
        self._bindings[name] = (source, output_name, timeout)
        return self

    def _resolve_bindings(self) -> Dict[str, ResourceHandle]:
        """Look up and type-check every bound output without reading its feed"""
        sources: Dict[str, ResourceHandle] = {}
        for spec in self.schema.arguments:
            if spec.name not in self._bindings:
                continue
            source_run, output_name, timeout = self._bindings[spec.name]
            source = source_run.output_handle(output_name, timeout)
            expected = DataStreamType.LIST if spec.data_type.is_list() else DataStreamType.VALUE
            if source.metadata.kind is not expected or source.data_type != spec.data_type:
                raise BindingError(
                    f"Output '{output_name}' ({source.metadata.kind.value} of {source.data_type}) "
                    f"does not fit argument '{spec.name}' ({spec.data_type})"
                )
            sources[spec.name] = source
        return sources

    def _check_list_sizes(self, sources: Dict[str, ResourceHandle]) -> None:
        limit = self._dispatcher.config.max_list_items
        if limit is None:
            return
        for spec in self.schema.arguments:
            if not spec.data_type.is_list():
                continue
            if spec.name in sources:
                size = len(sources[spec.name].snapshot())
            else:
                size = len(self._lists.get(spec.name, ([], None))[0])
            if size > limit:
                raise CapacityError("list", limit)

    def start(self) -> StreamingRun:
        """Create the inputs and invoke `run`.

        Every binding and size bound is checked before any bound output is
        read, so a start that fails leaves the source runs' change feeds
        alone and the builder can be fixed and started again.
        """
        if self._started:
            raise DispatchError("Streaming run already started")
        sources = self._resolve_bindings()
        self._check_list_sizes(sources)

        dispatcher = self._dispatcher
        context = PluginContext(ResourceTable(), dispatcher.config, dispatcher.capabilities)
        inputs: List[Input] = []
        bindings: List[Tuple[ArgumentSpec, ResourceHandle, Input]] = []

        try:
            for spec in self.schema.arguments:
                source = sources.get(spec.name)
                if spec.data_type.is_list():
                    if source is not None:
                        items, has_more = source.resync(), source.has_more
                    else:
                        items, has_more = self._lists.get(spec.name, ([], None))
                    resource = context.add_list_input(
                        spec.name, spec.description, spec.data_type, spec.supports_updates, items, has_more
                    )
                else:
                    value = source.resync() if source is not None else self._values.get(spec.name)
                    resource = context.add_value_input(
                        spec.name, spec.description, spec.data_type, value, spec.supports_updates
                    )
                inputs.append(resource)
                if source is not None:
                    bindings.append((spec, source, resource))
        except Exception:
            context.table.destroy_all()
            raise
        self._started = True

        run = StreamingRun(self._registration, context, inputs)
        for spec, source, resource in bindings:
            if not spec.supports_updates:
                # fixed arguments only take the snapshot
                source.close()
                continue
            binding = Binding(source, host_handle(context.table, resource.metadata))
            binding.start(apply_baseline=False)
            run._bindings.append(binding)
        run._start()
        return run


# =============================================================================
# Reactive invocation
# =============================================================================

class ReactiveInvocation:
    """A discrete plugin kept up to date with its inputs

    Each argument is a value input owned by this invocation. The host
    writes them through `set_input` or `input_handle(name)`; `pump()`
    collects the pending changes and re-runs the plugin once if there were
    any, unless its schema performs state changes.
    """

    def __init__(self, dispatcher: "Dispatcher", registration: _Registration,
                 initial: Optional[List[Optional[bytes]]] = None):
        self._dispatcher = dispatcher
        self.schema = registration.schema
        self.name = registration.schema.name
        arguments = self.schema.arguments
        if initial is None:
            initial = [None] * len(arguments)
        if len(initial) != len(arguments):
            raise DispatchError(f"Plugin '{self.name}' takes {len(arguments)} arguments, got {len(initial)}")

        self._context = PluginContext(ResourceTable(), dispatcher.config)
        self._inputs: List[ValueInput] = [
            self._context.add_value_input(spec.name, spec.description, spec.data_type, value)
            for spec, value in zip(arguments, initial)
        ]
        self._lock = threading.Lock()
        self.run_count = 0
        self.last_result: Optional[DiscreteResult] = None

    def input_handle(self, name: str):
        metadata = self._context.table.find(name, ResourceRole.INPUT)
        if metadata is None:
            raise UnknownArgumentError(self.name, name)
        return host_handle(self._context.table, metadata)

    def set_input(self, name: str, value: Optional[bytes]) -> None:
        handle = self.input_handle(name)
        if value is None:
            handle.clear()
        else:
            handle.set(value)

    def _drain_changes(self) -> int:
        count = 0
        for resource in self._inputs:
            while resource.poll_change() is not None:
                count += 1
        return count

    def pump(self) -> Optional[DiscreteResult]:
        """Re-run once if inputs changed since the last run.

        Returns the new result, or None when nothing was run.
        """
        with self._lock:
            changes = self._drain_changes()
            if changes == 0:
                return None
            if self.schema.performs_state_change:
                logger.debug("Not re-running %r after %d changes: it performs state changes", self.name, changes)
                return None
            logger.debug("Re-running %r after %d input changes", self.name, changes)
            return self._invoke()

    def trigger(self) -> DiscreteResult:
        """Run now with the current inputs, whatever the schema says."""
        with self._lock:
            self._drain_changes()
            return self._invoke()

    def _invoke(self) -> DiscreteResult:
        raw_inputs: List[bytes] = []
        for spec, resource in zip(self.schema.arguments, self._inputs):
            value = resource.get()
            if value is None:
                result = DiscreteResult.failure(f"Argument '{spec.name}' has no value")
                self.last_result = result
                return result
            raw_inputs.append(value)
        self.run_count += 1
        result = self._dispatcher.run_discrete(self.name, raw_inputs)
        self.last_result = result
        return result

    def close(self) -> None:
        self._context.table.destroy_all()


# =============================================================================
# Dispatcher
# =============================================================================

class Dispatcher:
    """Registry of plugins and entry point for running them"""

    def __init__(self, config: Optional[RuntimeConfig] = None, capabilities: Optional[Capabilities] = None):
        self.config = config if config is not None else RuntimeConfig()
        self.capabilities = capabilities if capabilities is not None else Capabilities.from_config(self.config)
        self.validator = SchemaValidator()
        self._plugins: Dict[str, _Registration] = {}
        self._lock = threading.Lock()

    def register(self, plugin: Plugin) -> Schema:
        """Register a plugin and return its sealed schema.

        The mode follows the plugin's base class.
        """
        if not isinstance(plugin, (DiscretePlugin, StreamingPlugin)):
            raise DispatchError(f"{type(plugin).__name__} is neither a DiscretePlugin nor a StreamingPlugin")
        name = plugin.name or type(plugin).__name__
        registry = SchemaRegistry(name, plugin.description, plugin.performs_state_change)
        plugin.declare(registry)
        schema = registry.seal()
        with self._lock:
            if name in self._plugins:
                raise DuplicatePluginError(name)
            self._plugins[name] = _Registration(plugin, schema)
        logger.debug(
            "Registered %s plugin %r",
            "streaming" if isinstance(plugin, StreamingPlugin) else "discrete",
            name,
        )
        return schema

    def plugin_names(self) -> List[str]:
        with self._lock:
            return list(self._plugins)

    def _registration(self, name: str) -> _Registration:
        with self._lock:
            registration = self._plugins.get(name)
        if registration is None:
            raise UnknownPluginError(name)
        return registration

    def get_schema(self, name: str) -> Schema:
        """Schema of a registered plugin. Never invokes `run`."""
        return self._registration(name).schema

    def is_streaming(self, name: str) -> bool:
        return self._registration(name).streaming

    def run_discrete(self, name: str, raw_inputs: List[bytes]) -> DiscreteResult:
        registration = self._registration(name)
        if registration.streaming:
            raise WrongModeError(name, "discrete")
        schema = registration.schema

        if len(raw_inputs) != len(schema.arguments):
            return DiscreteResult.failure(
                f"Plugin '{name}' takes {len(schema.arguments)} arguments, got {len(raw_inputs)}"
            )
        for spec, raw in zip(schema.arguments, raw_inputs):
            if not isinstance(raw, (bytes, bytearray, memoryview)):
                return DiscreteResult.failure(
                    f"Argument '{spec.name}' must be a byte buffer, got {type(raw).__name__}"
                )
        raw_inputs = [bytes(b) for b in raw_inputs]
        if self.config.validate_arguments:
            try:
                self.validator.validate_arguments(schema.arguments, raw_inputs)
            except ArgumentValidationError as e:
                return DiscreteResult.failure(str(e))

        logger.debug("Running discrete plugin %r", name)
        try:
            outputs = registration.plugin.run(raw_inputs)
        except PluginError as e:
            logger.warning("Discrete run of %r failed: %s", name, e.message)
            return DiscreteResult.failure(e.message)
        except Exception as e:
            logger.exception("Discrete plugin %r raised", name)
            return DiscreteResult.failure(_describe_failure(e))

        if not isinstance(outputs, (list, tuple)) or not all(isinstance(o, Output) for o in outputs):
            return DiscreteResult.failure(f"Plugin '{name}' returned something other than a list of Output")
        return DiscreteResult.success(list(outputs))

    def prepare_streaming(self, name: str) -> StreamingRunBuilder:
        registration = self._registration(name)
        if not registration.streaming:
            raise WrongModeError(name, "streaming")
        return StreamingRunBuilder(self, registration)

    def start_streaming(self, name: str) -> StreamingRun:
        """Start a streaming run with every argument left empty"""
        return self.prepare_streaming(name).start()

    def watch(self, name: str, initial: Optional[List[Optional[bytes]]] = None) -> ReactiveInvocation:
        registration = self._registration(name)
        if registration.streaming:
            raise WrongModeError(name, "discrete")
        return ReactiveInvocation(self, registration, initial)

    def close(self) -> None:
        self.capabilities.close()
