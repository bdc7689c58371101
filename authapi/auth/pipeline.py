"""
Request pipeline.

A route declares an ordered list of checks. Each check inspects the request
context and either lets it continue or short-circuits with a response; the
first short-circuit wins and later checks do not run.

    pipeline = Pipeline(rate_limit(PolicyId.API), authorize("profile_access"))
    outcome = pipeline.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response
    identity = outcome.identity

The RateLimit-* headers on the response describe the last policy charged,
which for route-specific limits is the stricter one.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from fastapi import Request, Response

from authapi.auth.middleware import AuthError, Identity
from authapi.auth.rate_limiter import PolicyId, RateLimitStatus
from authapi.container import Container, client_address, get_container
from authapi.errors import RateLimitError
from authapi.responses import error_response


@dataclass
class RequestContext:
    request: Request
    container: Container
    client: str
    identity: Optional[Identity] = None
    rate_limits: Dict[PolicyId, RateLimitStatus] = field(default_factory=dict)

    @property
    def endpoint(self) -> str:
        return self.request.url.path

    @property
    def user_agent(self) -> Optional[str]:
        return self.request.headers.get("user-agent")


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class ShortCircuit:
    response: Response


StepResult = Union[Continue, ShortCircuit]
Step = Callable[[RequestContext], StepResult]

CONTINUE = Continue()


def rate_limit(policy_id: PolicyId) -> Step:
    """Charge one attempt against a rate limit policy for the caller."""
    def step(ctx: RequestContext) -> StepResult:
        limiter = ctx.container.limiter
        try:
            ctx.rate_limits[policy_id] = limiter.check_and_increment(policy_id, ctx.client)
        except RateLimitError as e:
            policy = limiter.policy(policy_id)
            ctx.rate_limits[policy_id] = RateLimitStatus(
                limit=policy.max_attempts, remaining=0, reset_after=e.retry_after
            )
            ctx.container.audit.log_security("Rate limit exceeded", {
                "endpoint": ctx.endpoint,
                "ip": ctx.client,
                "policy": policy_id.value,
                "limit": policy.description,
            })
            return ShortCircuit(error_response(e))
        return CONTINUE
    return step


def authorize(action: str = "access") -> Step:
    """Require a valid bearer token; 401 when absent, 403 when invalid."""
    def step(ctx: RequestContext) -> StepResult:
        try:
            ctx.identity = ctx.container.gate.authorize(
                ctx.request.headers.get("authorization"),
                endpoint=ctx.endpoint,
                client=ctx.client,
                user_agent=ctx.user_agent,
                action=action,
            )
        except AuthError as e:
            return ShortCircuit(Response(status_code=e.status_code))
        return CONTINUE
    return step


class Pipeline:
    """Ordered capability checks for a route."""

    def __init__(self, *steps: Step):
        self.steps = steps

    def then(self, *steps: Step) -> "Pipeline":
        """Return a new pipeline with extra steps appended."""
        return Pipeline(*self.steps, *steps)

    def run(self, request: Request) -> Union[RequestContext, ShortCircuit]:
        ctx = RequestContext(
            request=request,
            container=get_container(request),
            client=client_address(request),
        )
        # Read back by the response-header middleware, also for short-circuits
        request.state.rate_limits = ctx.rate_limits
        for step in self.steps:
            result = step(ctx)
            if isinstance(result, ShortCircuit):
                return result
        return ctx


def charged_rate_limit(request: Request) -> Optional[RateLimitStatus]:
    """Budget of the last policy charged for this request, if any."""
    rate_limits = getattr(request.state, "rate_limits", None)
    if not rate_limits:
        return None
    return list(rate_limits.values())[-1]
