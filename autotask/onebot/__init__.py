"""OneBot action invoker."""

from autotask.onebot.client import ActionError, ActionInvoker, NoDataReturnedError, OneBotClient

__all__ = ["ActionError", "ActionInvoker", "NoDataReturnedError", "OneBotClient"]
