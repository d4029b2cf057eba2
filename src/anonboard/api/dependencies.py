"""Shared API dependencies resolved from application state."""

from typing import Annotated

from fastapi import Depends, Request

from anonboard.core.settings import Settings
from anonboard.services.ingestion import PostIngestionPipeline
from anonboard.services.ports import Ports


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ports(request: Request) -> Ports:
    return request.app.state.ports


def get_pipeline(request: Request) -> PostIngestionPipeline:
    return request.app.state.pipeline


SettingsDep = Annotated[Settings, Depends(get_settings)]
PortsDep = Annotated[Ports, Depends(get_ports)]
PipelineDep = Annotated[PostIngestionPipeline, Depends(get_pipeline)]


def client_address(request: Request, settings: SettingsDep) -> str:
    """Return the address a submission is attributed to.

    Behind trusted proxies, each proxy appends the address it received the
    request from to `X-Forwarded-For`, so the entry `trusted_proxy_hops`
    places from the right is the client as seen by the outermost proxy.
    Anything further left was supplied by the client and is ignored.
    Without trust, or with too few entries, the socket peer is used.
    """
    if settings.trust_forwarded_for:
        hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",")]
        hops = [hop for hop in hops if hop]
        if len(hops) >= settings.trusted_proxy_hops:
            return hops[-settings.trusted_proxy_hops]
    if request.client is not None:
        return request.client.host
    return "unknown"


ClientAddressDep = Annotated[str, Depends(client_address)]
