"""Build and tear down one optional area of the control panel."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from .schema import CapabilityDescriptor, ParamSpec
from .state import SyncState
from .widgets import ControlToolkit


class ControlBinding:
    """Link one control to one parameter. Dead bindings ignore late callbacks."""

    def __init__(self, area: "FeatureArea", spec: ParamSpec, handle: Any):
        self.area = area
        self.spec = spec
        self.handle = handle
        self.alive = True

    def __call__(self, raw: Any) -> None:
        if not self.alive:
            return
        try:
            value = self.spec.coerce(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("ignored value for {}: {}", self.spec.key, exc)
            return
        self.area.on_param_changed(self.spec, value)


class FeatureArea:
    """One folder of data-driven controls bound to a feature of the host.

    Subclasses say which message carries an edit upstream
    (:meth:`send_param`) and may add extra rows in :meth:`populate`.
    """

    def __init__(
        self,
        toolkit: ControlToolkit,
        send: Callable[..., Any],
        state: SyncState,
        on_layout: Optional[Callable[[], None]] = None,
    ):
        self.toolkit = toolkit
        self.send = send
        self.state = state
        self.on_layout = on_layout
        self.descriptor: Optional[CapabilityDescriptor] = None
        self.folder: Any = None
        self.bindings: List[ControlBinding] = []
        self._aux: List[Callable[[], None]] = []

    @property
    def area(self) -> str:
        return self.descriptor.area if self.descriptor else ""

    @property
    def built(self) -> bool:
        return self.folder is not None

    def build(self, descriptor: CapabilityDescriptor, values: Optional[Mapping[str, Any]] = None) -> None:
        self.teardown()
        self.descriptor = descriptor
        initial = self.initial_values(descriptor, values or {})
        self.state.replace_feature(descriptor.area, initial)
        self.folder = self.toolkit.create_folder(descriptor.title)
        self.populate()
        for spec in descriptor.ordered_params():
            handle = self.toolkit.create(self.folder, spec)
            if spec.key in initial:
                self.toolkit.set_value(handle, initial[spec.key])
            binding = ControlBinding(self, spec, handle)
            self.toolkit.on_change(handle, binding)
            self.bindings.append(binding)
        self.after_build()
        self._notify_layout()

    def initial_values(self, descriptor: CapabilityDescriptor, values: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(values)

    def populate(self) -> None:
        """Extra rows placed above the parameter controls."""

    def after_build(self) -> None:
        """Called once every binding exists."""

    def track_aux(self, release: Callable[[], None]) -> None:
        """Register the release of a node that lives outside the folder."""
        self._aux.append(release)

    def teardown(self) -> None:
        if self.folder is None and not self.bindings and not self._aux:
            return
        for binding in self.bindings:
            binding.alive = False
        aux, self._aux = self._aux, []
        for release in aux:
            try:
                release()
            except Exception:  # pylint: disable=broad-except
                logger.warning("failed to release an auxiliary node of {}", self.area or "area")
        folder, self.folder = self.folder, None
        self.drop_folder(folder)
        self.bindings = []
        if self.descriptor is not None:
            self.state.clear_feature(self.descriptor.area)
        self.descriptor = None
        self._notify_layout()

    def drop_folder(self, folder: Any) -> None:
        """Destroy a folder, detaching it by hand when the toolkit refuses."""
        if folder is None:
            return
        try:
            self.toolkit.destroy_folder(folder)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("folder destroy failed ({}), removing it by hand", exc)
            try:
                self.toolkit.remove_folder(folder)
            except Exception:  # pylint: disable=broad-except
                logger.exception("manual folder removal failed")

    def sync(self, values: Mapping[str, Any]) -> None:
        """Show host-side values without sending anything back."""
        for binding in self.bindings:
            if binding.spec.key in values:
                self.toolkit.set_value(binding.handle, values[binding.spec.key])

    def current_values(self) -> Dict[str, Any]:
        return self.state.feature(self.area) if self.descriptor else {}

    def on_param_changed(self, spec: ParamSpec, value: Any) -> None:
        self.state.set_param(self.area, spec.key, value)
        self.send_param(spec, value)

    def send_param(self, spec: ParamSpec, value: Any) -> None:
        raise NotImplementedError

    def binding(self, key: str) -> Optional[ControlBinding]:
        for binding in self.bindings:
            if binding.spec.key == key:
                return binding
        return None

    def _notify_layout(self) -> None:
        if self.on_layout is not None:
            self.on_layout()
