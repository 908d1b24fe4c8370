from .base import BaseSpeechClient, ProviderVoice

__all__ = ["BaseSpeechClient", "ProviderVoice"]
