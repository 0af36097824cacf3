from smarthome.ports.outbound import LLMPort, SessionStorePort

__all__ = ["LLMPort", "SessionStorePort"]
