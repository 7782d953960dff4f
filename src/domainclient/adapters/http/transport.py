"""
HTTP Transport - TransportClientPort over JSON/HTTP.

Blocking HttpApiClient calls run on a thread pool so that every port
method returns a pending future immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any

from ...core.cancellation import CancellationToken
from ...core.domain.changeset import ChangeSet, ChangeSetEntry
from ...core.ports.config_provider import ClientConfig
from ...core.ports.transport_client import (
    EntityQuery,
    InvokeArgs,
    InvokeResult,
    QueryResult,
    TransportClientPort,
)
from .client import HttpApiClient
from .codec import JsonCodec


class HttpTransportClient(TransportClientPort):
    """
    Transport to a domain service exposed over HTTP.

    Queries without side effects are sent as GET ``{service_url}/{query}``,
    everything else as POST. Changesets are posted to ``SubmitChanges``.
    Cancellation is cooperative: the token is checked before a request is
    sent and again before its response is decoded.
    """

    SUBMIT_ENDPOINT = "SubmitChanges"

    def __init__(
        self,
        client: HttpApiClient,
        codec: JsonCodec | None = None,
        max_workers: int = 4,
        executor: Executor | None = None,
    ):
        super().__init__()
        self.logger = logging.getLogger("HttpTransportClient")
        self.client = client
        self.codec = codec or JsonCodec()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="domainclient-http"
        )

    @classmethod
    def from_config(
        cls, config: ClientConfig, codec: JsonCodec | None = None
    ) -> HttpTransportClient:
        client = HttpApiClient(
            base_url=config.service_url,
            headers=config.headers,
            max_retries=config.max_retries,
            timeout=config.timeout,
            verify_ssl=config.verify_ssl,
        )
        return cls(client, codec=codec, max_workers=config.max_workers)

    @property
    def supports_cancellation(self) -> bool:
        return True

    def _query_core(self, query: EntityQuery, token: CancellationToken) -> Future[QueryResult]:
        def execute() -> QueryResult:
            params = self.codec.encode_query(query)
            if query.has_side_effects:
                payload = self.client.post(query.query_name, json=params)
            else:
                payload = self.client.get(
                    query.query_name, params=self.codec.encode_query_string(params)
                )
            token.raise_if_cancellation_requested()
            return self.codec.decode_query_result(payload, query.entity_type)

        return self._run(execute, token)

    def _submit_core(
        self,
        change_set: ChangeSet,
        entries: list[ChangeSetEntry],
        token: CancellationToken,
    ) -> Future[list[ChangeSetEntry]]:
        def execute() -> list[ChangeSetEntry]:
            payload = self.client.post(
                self.SUBMIT_ENDPOINT, json=self.codec.encode_change_set(entries)
            )
            token.raise_if_cancellation_requested()
            return self.codec.decode_change_set_results(payload, entries)

        return self._run(execute, token)

    def _invoke_core(self, args: InvokeArgs, token: CancellationToken) -> Future[InvokeResult]:
        def execute() -> InvokeResult:
            params = self.codec.encode_invoke(args)
            if args.has_side_effects:
                payload = self.client.post(args.operation_name, json=params)
            else:
                payload = self.client.get(
                    args.operation_name, params=self.codec.encode_query_string(params)
                )
            token.raise_if_cancellation_requested()
            return self.codec.decode_invoke_result(payload, args.return_type)

        return self._run(execute, token)

    def _run(self, fn: Callable[[], Any], token: CancellationToken) -> Future[Any]:
        def guarded() -> Any:
            token.raise_if_cancellation_requested()
            return fn()

        return self._executor.submit(guarded)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self.client.close()

    def __enter__(self) -> HttpTransportClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
