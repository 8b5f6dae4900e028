from typing import cast


class DmethodRuntimeError(RuntimeError):
    @property
    def message(self) -> str:
        return cast("str", self.args[0])


class MethodAreaLockError(DmethodRuntimeError):
    pass


class MethodAreaPermissionError(MethodAreaLockError):
    pass


class MethodAreaLockedError(MethodAreaLockError):
    pass


class MethodAreaLockIOError(MethodAreaLockError):
    pass


class NoMethodsAvailableError(DmethodRuntimeError):
    pass


class NoMethodSelectedError(DmethodRuntimeError):
    pass


class SelectionPersistenceError(DmethodRuntimeError):
    pass


class AcknowledgementReadError(DmethodRuntimeError):
    """Reading the operator's acknowledgement failed

    Unlike the other errors, this one is fatal for the entire program rather
    than just the request that triggered it.
    """
