"""HTTP endpoints for planning and executing auto-agent goals.

Every response uses the ``{success, data?, error?}`` envelope.
"""

from typing import Any, Callable, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from etf_autoagent.config import ConfigurationError, Settings
from etf_autoagent.execution.chain import ChainAdapter, ChainAdapterError
from etf_autoagent.execution.executor import ActionExecutor, ExecutorConfig
from etf_autoagent.execution.privy import PrivyChainAdapter
from etf_autoagent.execution.simulated import SimulatedChainAdapter, simulate_flow_to_base_bridge
from etf_autoagent.models.action import AgentAction
from etf_autoagent.models.api import ApiResponse
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.enums import ActionType
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.observability.logging import get_logger
from etf_autoagent.planner.adapter import PlannerAdapter
from etf_autoagent.planner.enhanced import EnhancedGeminiPlanner, PlannerConfig

logger = get_logger(__name__)

PlannerFactory = Callable[[Optional[str]], PlannerAdapter]
ChainFactory = Callable[[Settings, Optional["PrivyConfig"]], ChainAdapter]


class PrivyConfig(BaseModel):
    """Privy credentials a client may send when the server has none.

    Attributes:
        app_id: Privy application id.
        app_secret: Privy application secret.
        auth_private_key: Authorization key forwarded to the bridge server.
    """

    model_config = ConfigDict(populate_by_name=True)

    app_id: Optional[str] = Field(default=None, alias="appId")
    app_secret: Optional[str] = Field(default=None, alias="appSecret")
    auth_private_key: Optional[str] = Field(default=None, alias="authPrivateKey")


class PlanRequest(BaseModel):
    """Body of `POST /api/auto-agent/plan`.

    Attributes:
        goal: Natural-language goal to plan for. Required.
        context: Portfolio and market context passed to the planner.
        api_key: Gemini key overriding the server key for this request.
    """

    model_config = ConfigDict(populate_by_name=True)

    goal: Optional[str] = None
    context: Optional[AgentContext] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class ExecuteRequest(BaseModel):
    """Body of `POST /api/auto-agent/execute`.

    Attributes:
        plan: Wire-format plan, validated into an AgentPlan by the route.
        user_id: Owner of the server wallet.
        wallet_id: Server wallet that signs every action.
        privy_config: Client-side Privy credentials, used only when the
            server has none.
    """

    model_config = ConfigDict(populate_by_name=True)

    plan: Optional[dict[str, Any]] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    wallet_id: Optional[str] = Field(default=None, alias="walletId")
    privy_config: Optional[PrivyConfig] = Field(default=None, alias="privyConfig")


class BridgeRequest(BaseModel):
    """Body of `POST /api/auto-agent/bridge`.

    Attributes:
        user_id: Owner of the server wallet.
        wallet_id: Wallet whose address receives the bridged USDC.
        flow_amount: FLOW amount as a decimal string; must be finite and
            positive.
        privy_config: Client-side Privy credentials.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    wallet_id: Optional[str] = Field(default=None, alias="walletId")
    flow_amount: Optional[str] = Field(default=None, alias="flowAmount")
    privy_config: Optional[PrivyConfig] = Field(default=None, alias="privyConfig")


def _ok(data: Any) -> dict[str, Any]:
    return ApiResponse.ok(data).model_dump(exclude_none=True)


def _fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ApiResponse.fail(error).model_dump(exclude_none=True)
    )


def select_chain_adapter(settings: Settings, privy: Optional[PrivyConfig] = None) -> ChainAdapter:
    """Picks the Privy adapter when credentials exist, else the simulated one.

    Server settings take precedence over credentials sent by the client.

    Raises:
        ConfigurationError: When real services are forced without Privy
            credentials.
    """
    privy = privy or PrivyConfig()
    if settings.has_privy_config:
        app_id, app_secret = settings.privy_app_id, settings.privy_app_secret
    else:
        app_id, app_secret = privy.app_id, privy.app_secret
    if app_id and app_secret:
        return PrivyChainAdapter(
            app_id,
            app_secret,
            auth_key=settings.privy_auth_key or privy.auth_private_key,
            api_url=settings.privy_api_url,
            bridge_server_url=settings.bridge_server_url,
        )
    if settings.force_real_services and not settings.use_mock_services:
        raise ConfigurationError(
            "Privy configuration is required and not found in environment variables"
        )
    return SimulatedChainAdapter()


def example_plans() -> list[dict[str, Any]]:
    bridge = AgentPlan.new(
        "Bridge 10 FLOW to Base USDC",
        [
            AgentAction(
                id="action_1",
                type=ActionType.BRIDGE,
                description="Bridge 10 FLOW from Flow EVM to Base USDC",
                parameters={
                    "fromChain": "747",
                    "toChain": "8453",
                    "amount": "10.0",
                    "asset": "FLOW",
                },
            )
        ],
    )
    bridge.id = "example_1"
    deposit = AgentPlan.new(
        "Deposit into ETF and rebalance portfolio",
        [
            AgentAction(
                id="action_1",
                type=ActionType.DEPOSIT,
                description="Deposit 50 USDC into ETF vault",
                parameters={"token": "USDC", "amount": "50.0"},
            ),
            AgentAction(
                id="action_2",
                type=ActionType.REBALANCE,
                description="Rebalance portfolio for optimal allocation",
                parameters={"strategy": "optimize_returns"},
            ),
        ],
    )
    deposit.id = "example_2"
    return [bridge.to_wire(), deposit.to_wire()]


SUPPORTED_BRIDGE_ROUTES = [
    {
        "fromChain": "747",
        "toChain": "8453",
        "fromToken": "FLOW",
        "toToken": "USDC",
        "minAmount": "0.1",
        "maxAmount": "1000",
        "estimatedTime": "2-5 minutes",
        "fees": {"bridgeFee": "0.1%", "gasEstimate": "~$2-5"},
    },
    {
        "fromChain": "545",
        "toChain": "8453",
        "fromToken": "FLOW",
        "toToken": "USDC",
        "minAmount": "0.1",
        "maxAmount": "100",
        "estimatedTime": "1-3 minutes",
        "fees": {"bridgeFee": "0.1%", "gasEstimate": "~$0.01"},
    },
]


def create_agent_router(
    settings: Settings,
    planner_factory: Optional[PlannerFactory] = None,
    chain_factory: Optional[ChainFactory] = None,
    executor_config: Optional[ExecutorConfig] = None,
) -> APIRouter:
    """Builds the ``/api/auto-agent`` router.

    Args:
        settings: Server configuration.
        planner_factory: Builds a planner from an optional API key. Defaults
            to the enhanced Gemini planner.
        chain_factory: Builds the chain adapter for a request. Defaults to
            ``select_chain_adapter``.
        executor_config: Executor timing. Defaults to the configured action
            delay.
    """
    router = APIRouter(prefix="/api/auto-agent", tags=["auto-agent"])
    chain_factory = chain_factory or select_chain_adapter
    executor_config = executor_config or ExecutorConfig(
        action_delay_seconds=settings.action_delay_seconds
    )

    def default_planner(api_key: Optional[str]) -> PlannerAdapter:
        return EnhancedGeminiPlanner(
            api_key=api_key, config=PlannerConfig(model=settings.gemini_model)
        )

    planner_factory = planner_factory or default_planner

    @router.post("/plan")
    def create_plan(body: PlanRequest):
        if not body.goal:
            return _fail(400, "Goal is required")
        logger.info(
            "Creating auto-agent plan",
            extra={"extra_fields": {"goal": body.goal}},
        )
        planner = planner_factory(body.api_key or settings.gemini_api_key)
        plan = planner.create_plan(body.goal, body.context or AgentContext())
        logger.info(
            "Plan created",
            extra={
                "extra_fields": {
                    "plan_id": plan.id,
                    "actions": len(plan.actions),
                    "status": plan.status,
                }
            },
        )
        return _ok(plan.to_wire())

    @router.get("/plan")
    def list_example_plans():
        return _ok({"examples": example_plans()})

    @router.post("/execute")
    def execute_plan(body: ExecuteRequest):
        if not body.plan or not body.user_id or not body.wallet_id:
            return _fail(400, "Plan, userId, and walletId are required")
        try:
            plan = AgentPlan.model_validate(body.plan)
        except ValidationError as e:
            return _fail(400, f"Invalid plan: {e.error_count()} validation error(s)")

        try:
            chain = chain_factory(settings, body.privy_config)
        except ConfigurationError as e:
            return _fail(400, str(e))

        try:
            wallet = chain.get_server_wallet(body.user_id, body.wallet_id)
        except Exception as e:
            logger.error(
                "Wallet verification failed",
                extra={"extra_fields": {"wallet_id": body.wallet_id, "error": str(e)}},
            )
            return _fail(400, "Failed to verify wallet")
        logger.info("Wallet verified", extra={"extra_fields": {"address": wallet.address}})

        executor = ActionExecutor(
            chain,
            body.user_id,
            body.wallet_id,
            config=executor_config,
            on_progress=lambda a: logger.info(
                "Action progress",
                extra={"extra_fields": {"action_id": a.id, "status": a.status}},
            ),
            on_complete=lambda a: logger.info(
                "Action completed",
                extra={"extra_fields": {"action_id": a.id, "tx_hash": a.tx_hash}},
            ),
        )
        executed = executor.execute_plan(plan)
        return _ok(executed.to_wire())

    @router.get("/execute")
    def execution_status(
        user_id: Optional[str] = Query(default=None, alias="userId"),
        wallet_id: Optional[str] = Query(default=None, alias="walletId"),
    ):
        if not user_id or not wallet_id:
            return _fail(400, "userId and walletId are required")
        return _ok(
            {
                "userId": user_id,
                "walletId": wallet_id,
                "status": "ready",
                "lastExecution": None,
                "availableActions": [t.value for t in ActionType],
            }
        )

    @router.post("/bridge")
    def bridge(body: BridgeRequest):
        if not body.user_id or not body.wallet_id or not body.flow_amount:
            return _fail(400, "userId, walletId, and flowAmount are required")
        try:
            chain = chain_factory(settings, body.privy_config)
            result = simulate_flow_to_base_bridge(
                chain, body.user_id, body.wallet_id, body.flow_amount
            )
        except (ConfigurationError, ValueError) as e:
            return _fail(400, str(e))
        except ChainAdapterError:
            return _fail(400, "Failed to verify wallet")
        logger.info(
            "Bridge simulated",
            extra={"extra_fields": {"wallet_id": body.wallet_id, "output": result["outputAmount"]}},
        )
        return _ok(result)

    @router.get("/bridge")
    def bridge_config():
        return _ok({"supportedRoutes": SUPPORTED_BRIDGE_ROUTES, "status": "operational"})

    return router
