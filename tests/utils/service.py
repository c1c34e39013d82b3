"""Handlers used by the test route table: flat operationId keys plus one namespaced group."""

from typing import Any

from fastapi import Request, Response


async def getPathParam(request: Request, response: Response) -> dict[str, Any]:
    return {"id": request.state.validated.params["id"]}


async def getQueryParam(request: Request, response: Response) -> dict[str, Any]:
    q = request.state.validated.query
    return {"sum": q["int1"] + q["int2"]}


def getHeaderParam(request: Request, response: Response) -> dict[str, Any]:
    return {"requestId": request.headers["x-request-id"]}


async def postBodyParam(request: Request, response: Response) -> dict[str, Any]:
    response.status_code = 201
    response.headers["X-Created"] = "yes"
    return {"str1": request.state.validated.body["str1"]}


async def getNoParam(request: Request, response: Response) -> None:
    response.status_code = 204
    return None


async def getResponses(request: Request, response: Response) -> dict[str, Any]:
    if request.query_params.get("replyType") == "valid":
        return {"response": "test data", "count": 3}
    return {"invalid": 1}


async def getSecret(request: Request, response: Response) -> dict[str, Any]:
    auth = request.state.auth
    if auth is None:
        return {"anonymous": True, "controller": request.state.controller_name}
    return {
        "roles": auth.roles,
        "entityId": auth.entity_id,
        "entityType": auth.entity_type,
        "authTypes": auth.auth_types,
        "controller": request.state.controller_name,
    }


async def getOpen(request: Request, response: Response) -> dict[str, Any]:
    return {"auth": request.state.auth}


async def _widget_list(request: Request, response: Response) -> list[dict[str, Any]]:
    return [{"name": "w1"}, {"name": "w2"}]


def build_service() -> dict[str, Any]:
    return {
        "getPathParam": getPathParam,
        "getQueryParam": getQueryParam,
        "getHeaderParam": getHeaderParam,
        "postBodyParam": postBodyParam,
        "getNoParam": getNoParam,
        "getResponses": getResponses,
        "getSecret": getSecret,
        "getOpen": getOpen,
        # /Widget/List -> service["widget"]["WidgetList"]
        "widget": {"WidgetList": _widget_list},
    }


# Module-level service so "tests.utils.service:SERVICE" can be loaded by path
SERVICE = build_service()
