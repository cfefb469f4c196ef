"""SpaceCoordinator - 虚拟桌面（Spaces）枚举与切换

SkyLight 是私有框架，符号随系统版本可能消失：
- SkyLightSpaceProvider: ctypes 绑定 SkyLight，CF 对象经 pyobjc 桥接
- NullSpaceProvider: 绑定失败时使用，所有操作为空操作

绑定在第一次使用时进行，而不是导入时。
"""

import ctypes
import ctypes.util
from abc import ABC, abstractmethod
from collections.abc import Callable

from devmux import config
from devmux.errors import PermissionUnavailable
from devmux.models import DisplaySpaces, SpaceInfo
from devmux.telemetry import DiagnosticLog
from devmux.timer import poll_until

# SLSCopySpacesForWindows 的 mask：当前 + 其它 + 用户 space
ALL_SPACES_MASK = 0x7
USER_SPACE_TYPE = 0


class SpaceProvider(ABC):
    """虚拟桌面原语"""

    bound: bool = True

    @abstractmethod
    def managed_display_spaces(self) -> list[dict]:
        """Raw CGSCopyManagedDisplaySpaces records."""

    @abstractmethod
    def active_space(self) -> int | None:
        ...

    @abstractmethod
    def spaces_for_window(self, window_id: int) -> list[int]:
        ...

    @abstractmethod
    def set_current_space(self, display_id: str, space_id: int) -> None:
        ...


class NullSpaceProvider(SpaceProvider):
    """SkyLight 不可用时的空对象"""

    bound = False

    def __init__(self, reason: str = ""):
        self.reason = reason

    def managed_display_spaces(self) -> list[dict]:
        return []

    def active_space(self) -> int | None:
        return None

    def spaces_for_window(self, window_id: int) -> list[int]:
        return []

    def set_current_space(self, display_id: str, space_id: int) -> None:
        return None


class SkyLightSpaceProvider(SpaceProvider):
    """ctypes 绑定 SkyLight 私有符号

    Raises:
        PermissionUnavailable: 框架或任一符号无法解析（构造时）
    """

    def __init__(self, path: str = config.SKYLIGHT_PATH):
        try:
            import objc
            from Foundation import NSArray, NSNumber, NSString
        except ImportError as e:
            raise PermissionUnavailable("spaces", f"pyobjc unavailable: {e}") from e
        self._objc = objc
        self._ns_array = NSArray
        self._ns_number = NSNumber
        self._ns_string = NSString

        try:
            lib = ctypes.cdll.LoadLibrary(path)
            cf = ctypes.cdll.LoadLibrary(ctypes.util.find_library("CoreFoundation") or "CoreFoundation")
            self._main_connection_id = lib.CGSMainConnectionID
            self._get_active_space = lib.CGSGetActiveSpace
            self._copy_managed = lib.CGSCopyManagedDisplaySpaces
            self._copy_spaces_for_windows = lib.SLSCopySpacesForWindows
            self._set_current_space = lib.SLSManagedDisplaySetCurrentSpace
            self._cf_release = cf.CFRelease
        except (OSError, AttributeError) as e:
            raise PermissionUnavailable("spaces", f"SkyLight unavailable: {e}") from e

        self._main_connection_id.restype = ctypes.c_int32
        self._main_connection_id.argtypes = []
        self._get_active_space.restype = ctypes.c_uint64
        self._get_active_space.argtypes = [ctypes.c_int32]
        self._copy_managed.restype = ctypes.c_void_p
        self._copy_managed.argtypes = [ctypes.c_int32]
        self._copy_spaces_for_windows.restype = ctypes.c_void_p
        self._copy_spaces_for_windows.argtypes = [ctypes.c_int32, ctypes.c_int32, ctypes.c_void_p]
        self._set_current_space.restype = None
        self._set_current_space.argtypes = [ctypes.c_int32, ctypes.c_void_p, ctypes.c_uint64]
        self._cf_release.restype = None
        self._cf_release.argtypes = [ctypes.c_void_p]

    def _connection(self) -> int:
        return self._main_connection_id()

    def _take(self, ptr: int | None):
        """Bridge a +1 CF pointer into a Python object and drop our reference."""
        if not ptr:
            return None
        obj = self._objc.objc_object(c_void_p=ctypes.c_void_p(ptr))
        self._cf_release(ptr)
        return obj

    def managed_display_spaces(self) -> list[dict]:
        displays = self._take(self._copy_managed(self._connection()))
        if displays is None:
            return []
        return [dict(d) for d in displays]

    def active_space(self) -> int | None:
        return int(self._get_active_space(self._connection())) or None

    def spaces_for_window(self, window_id: int) -> list[int]:
        windows = self._ns_array.arrayWithObject_(self._ns_number.numberWithUnsignedInt_(window_id))
        result = self._take(self._copy_spaces_for_windows(
            self._connection(), ALL_SPACES_MASK, self._objc.pyobjc_id(windows)
        ))
        if result is None:
            return []
        return [int(s) for s in result]

    def set_current_space(self, display_id: str, space_id: int) -> None:
        display = self._ns_string.stringWithString_(display_id)
        self._set_current_space(self._connection(), self._objc.pyobjc_id(display), space_id)


def _space_id(record) -> int:
    if not record:
        return 0
    return int(record.get("id64") or record.get("ManagedSpaceID") or 0)


def parse_display_spaces(raw: list[dict]) -> list[DisplaySpaces]:
    """Keep user spaces only; index is the 1-based position in the raw list."""
    result = []
    for display_index, display in enumerate(raw):
        current_id = _space_id(display.get("Current Space"))
        spaces = []
        for position, space in enumerate(display.get("Spaces") or []):
            if int(space.get("type", USER_SPACE_TYPE)) != USER_SPACE_TYPE:
                continue
            sid = _space_id(space)
            spaces.append(SpaceInfo(
                id=sid,
                index=position + 1,
                display=display_index,
                is_current=sid == current_id,
            ))
        result.append(DisplaySpaces(
            display_index=display_index,
            display_id=str(display.get("Display Identifier") or ""),
            spaces=spaces,
            current_space_id=current_id,
        ))
    return result


class SpaceCoordinator:
    """Spaces 查询与切换

    provider_factory 在首次使用时调用；抛出 PermissionUnavailable 或 OSError
    时退化为 NullSpaceProvider。
    """

    def __init__(
        self,
        provider_factory: Callable[[], SpaceProvider] = SkyLightSpaceProvider,
        diagnostics: DiagnosticLog | None = None,
    ):
        self._factory = provider_factory
        self._provider: SpaceProvider | None = None
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()

    @property
    def provider(self) -> SpaceProvider:
        if self._provider is None:
            try:
                self._provider = self._factory()
            except (PermissionUnavailable, OSError) as e:
                self.diagnostics.warn(f"Spaces: SkyLight not bound ({e}); space switching disabled")
                self._provider = NullSpaceProvider(str(e))
        return self._provider

    @property
    def available(self) -> bool:
        return self.provider.bound

    def displays(self) -> list[DisplaySpaces]:
        return parse_display_spaces(self.provider.managed_display_spaces())

    def active_space(self) -> int | None:
        return self.provider.active_space()

    def space_for_window(self, window_id: int) -> int | None:
        spaces = self.provider.spaces_for_window(window_id)
        return spaces[0] if spaces else None

    def switch_to(self, space_id: int) -> bool:
        """Switch the display that owns space_id to it.

        Returns:
            False if no display owns the space (or spaces are unavailable).
        """
        for display in self.displays():
            if any(s.id == space_id for s in display.spaces):
                self.provider.set_current_space(display.display_id, space_id)
                self.diagnostics.info(f"Spaces: switched display {display.display_index} to {space_id}")
                return True
        self.diagnostics.warn(f"Spaces: no display owns space {space_id}")
        return False

    async def wait_until_active(
        self,
        space_id: int,
        timeout: float = config.SPACE_SWITCH_SETTLE,
        interval: float = config.SPACE_SWITCH_POLL_INTERVAL,
    ) -> bool:
        """Poll until space_id is the active space or timeout elapses."""
        return await poll_until(lambda: self.active_space() == space_id, timeout, interval)
