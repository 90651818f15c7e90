"""Push gateway adapters."""

from mass_notify.gateway.expo import EXPO_PUSH_URL, DryRunPushGateway, ExpoPushGateway

__all__ = ["EXPO_PUSH_URL", "DryRunPushGateway", "ExpoPushGateway"]
