"""Enumeration definitions for the ETF auto-agent.

This module contains the standard Enum classes shared by the planner, the
executor and the verification server so that statuses and action tags are
spelled the same way everywhere.
"""

from enum import Enum


class ActionType(str, Enum):
    """Defines the kind of operation an agent action performs.

    Attributes:
        BRIDGE: Move assets between chains.
        CONTRACT_INTERACTION: Call an arbitrary contract method.
        DEPOSIT: Deposit tokens into the ETF vault.
        WITHDRAW: Redeem vault shares for tokens.
        REBALANCE: Reallocate the portfolio.
        ANALYSIS: Produce an advisory report, no chain effects.
    """

    BRIDGE = "bridge"
    CONTRACT_INTERACTION = "contract_interaction"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    REBALANCE = "rebalance"
    ANALYSIS = "analysis"


class ActionStatus(str, Enum):
    """Lifecycle of a single action.

    Attributes:
        PENDING: Planned but not started.
        EXECUTING: Handler is running.
        COMPLETED: Handler reported success.
        FAILED: Handler reported failure or raised.
    """

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class PlanStatus(str, Enum):
    """Lifecycle of a plan.

    Attributes:
        PLANNING: Created, not yet executed.
        EXECUTING: The executor is walking its actions.
        COMPLETED: Every action completed.
        FAILED: At least one action did not complete.
    """

    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class ActionPriority(str, Enum):
    """Relative urgency assigned by the enhanced planner."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VerificationMethod(str, Enum):
    """How a wallet/Twitter link was proven.

    Attributes:
        TWEET: A public tweet containing the wallet and hashtags.
        OAUTH: Twitter OAuth 2.0 authorization with PKCE.
        BIO: A one-time code placed in the profile bio.
    """

    TWEET = "tweet"
    OAUTH = "oauth"
    BIO = "bio"


class ServiceMode(str, Enum):
    """Whether external collaborators are real or simulated."""

    MOCK = "mock"
    REAL = "real"
