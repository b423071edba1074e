from src.infrastructure.external.actions.effects import (HttpActionEffects,
                                                        LoggingActionEffects,
                                                        build_action_effects)

__all__ = ["LoggingActionEffects", "HttpActionEffects", "build_action_effects"]
