"""API endpoints for the route aggregator."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from aggregator.models.api import QuoteRequestModel, QuoteResponse
from aggregator.routing.router import RouteAggregator, get_default_aggregator

logger = structlog.get_logger()

router = APIRouter()


def get_aggregator() -> RouteAggregator:
    """Dependency provider for the aggregator instance.

    Override this in tests to inject a configured aggregator:
        app.dependency_overrides[get_aggregator] = lambda: aggregator
    """
    return get_default_aggregator()


@router.post("/quote")
async def quote(
    body: QuoteRequestModel,
    aggregator: RouteAggregator = Depends(get_aggregator),
) -> QuoteResponse:
    """Quote every route for a trade, best first.

    Error Handling:
        - Invalid request schema: 422 Validation Error (Pydantic)
        - Semantically invalid request (zero amount, same token, ...): 400
        - No route: 200 with `best` null and an empty `all`
    """
    try:
        request = body.to_request()
        aggregator.validate_request(request)
    except ValueError as e:
        logger.info("quote_rejected", error=str(e))
        raise HTTPException(status_code=400, detail=str(e)) from e

    result = await aggregator.get_routes(request)

    response = QuoteResponse.from_result(result)
    logger.info(
        "returning_quote",
        sell=request.sell_token.address,
        buy=request.buy_token.address,
        mode=request.mode.value,
        routes=len(response.all),
        rejected=len(response.diagnostics.rejected),
    )
    return response
