"""QuotaStore 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

Document = dict[str, Any]
UpdateFn = Callable[[Document | None], Document | None]
DocumentListener = Callable[[Document | None], Awaitable[None]]
ErrorListener = Callable[[Exception], Awaitable[None]]


class Subscription(ABC):
    """Handle returned by ``subscribe``."""

    @abstractmethod
    async def close(self) -> None:
        """Stop delivering notifications."""
        ...


class QuotaStore(ABC):
    """カウンタレコードを保持するストアの抽象基底クラス。"""

    @abstractmethod
    async def get(self) -> Document | None:
        """保存済みドキュメントを返す。存在しなければ None。"""
        ...

    @abstractmethod
    async def run_transaction(self, update: UpdateFn) -> None:
        """読み取り・更新・書き込みを一つのトランザクションで実行する。

        update はスナップショット（存在しなければ None）を受け取り、書き込む
        ドキュメントを返す。None を返した場合は書き込まない。例外を送出した
        場合は何も書き込まずにそのまま伝播する。楽観的リトライで複数回
        呼ばれることがあるため、副作用を持たないこと。
        """
        ...

    @abstractmethod
    async def subscribe(
        self,
        listener: DocumentListener,
        on_error: ErrorListener | None = None,
    ) -> Subscription:
        """コミットされた変更ごとに listener へドキュメントを通知する。"""
        ...
