"""Report synthesis from aggregated call outcomes."""

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from autoquote.domain.calls import CallRecord, CallStatus
from autoquote.domain.reports import BestPick, PriceRange, Report, ShopQuote
from autoquote.domain.sessions import SessionRecord, Shop
from autoquote.errors import ExternalServiceError
from autoquote.services.analysis import ChatCompletionClient

logger = logging.getLogger(__name__)

NO_QUOTES_DISCLAIMER = (
    "No quotes were obtained. Please contact shops directly for estimates."
)

REPORT_SYSTEM_PROMPT = """You are a helpful assistant that creates auto repair \
quote comparison reports. Analyze the call transcripts and extracted data to \
produce a structured report.

Output JSON with this exact schema:
{
  "summary": "Brief overview of the quotes obtained",
  "quotes": [
    {
      "shop_id": "string",
      "shop_name": "string",
      "price_range": { "low": number | null, "high": number | null },
      "timeframe_days": number | null,
      "can_do_work": boolean,
      "requires_inspection": boolean,
      "notes": "string",
      "recommendation_score": number (1-10, based on price, time, and availability)
    }
  ],
  "best_pick": {
    "by_price": "shop_id of cheapest option or null if no quotes",
    "by_time": "shop_id of fastest option or null if no timeframes",
    "overall": "shop_id of best overall value or null"
  },
  "disclaimer": "These are rough estimates based on phone conversations. Actual \
prices may vary after in-person inspection. Always get a written quote before \
authorizing repairs."
}

Include every shop listed in the call results, including shops whose call \
failed; give those a recommendation_score of 1.

Guidelines for recommendation_score:
- 9-10: Excellent price, quick turnaround, confirmed availability
- 7-8: Good price or quick turnaround
- 5-6: Average, requires inspection but seems capable
- 3-4: Limited info or higher prices
- 1-2: Cannot do work or very unfavorable"""


@dataclass
class ReportService:
    """Builds the ranked comparison report for a finished session."""

    client: ChatCompletionClient
    model: str
    thinking_budget_tokens: int | None = None
    max_tokens: int = 8192

    async def synthesize(
        self,
        session: SessionRecord,
        calls: list[CallRecord],
        note: str | None = None,
    ) -> Report:
        """Return a report covering every shop in the session."""
        completed = [call for call in calls if call.status == CallStatus.COMPLETED]
        if not completed:
            return _no_quotes_report(session, calls, note)

        try:
            raw = await self.client.complete_json(
                model=self.model,
                system_prompt=REPORT_SYSTEM_PROMPT,
                user_prompt=build_report_prompt(session, calls),
                max_tokens=self.max_tokens,
                thinking_budget_tokens=self.thinking_budget_tokens,
            )
        except Exception as exc:
            raise ExternalServiceError("report-synthesis", str(exc)) from exc
        try:
            report = Report.model_validate(raw)
        except PydanticValidationError as exc:
            raise ExternalServiceError(
                "report-synthesis", "malformed report"
            ) from exc
        return _with_all_shops(report, session, calls)


def build_report_prompt(session: SessionRecord, calls: list[CallRecord]) -> str:
    """Format damage details and every call outcome for the synthesis engine."""
    by_shop = {call.shop_id: call for call in calls}
    sections = []
    for shop in session.shops:
        call = by_shop.get(shop.id)
        sections.append(_format_call_section(shop, call))

    summary = session.damage_summary
    vehicle_info = session.vehicle.describe() if session.vehicle else "Not specified"
    completed_count = sum(1 for c in calls if c.status == CallStatus.COMPLETED)
    calls_text = "\n---\n".join(sections)
    return (
        "## Damage Information\n\n"
        f"{summary.description if summary else session.description_raw}\n\n"
        f"Severity: {summary.severity if summary else 'Unknown'}\n"
        "Affected Areas: "
        f"{', '.join(summary.affected_areas) if summary else 'Not specified'}\n"
        "Estimated Repair Type: "
        f"{summary.estimated_repair_type if summary else 'Not specified'}\n\n"
        f"## Vehicle Information\n\n{vehicle_info}\n\n"
        f"## Location\n\n{session.location}\n\n"
        f"## Call Results ({completed_count} of {len(session.shops)} calls "
        "completed)\n\n"
        f"{calls_text}\n\n"
        "## Instructions\n\n"
        "Based on the above call results, generate a comprehensive comparison "
        "report:\n"
        "1. Summarize the overall results\n"
        "2. List each shop's quote with extracted information\n"
        "3. Assign a recommendation score (1-10) based on price, timeframe, "
        "and capability\n"
        "4. Identify the best picks for price, time, and overall value\n"
        "5. Include an appropriate disclaimer\n"
    )


def _format_call_section(shop: Shop, call: CallRecord | None) -> str:
    if call is None or call.status != CallStatus.COMPLETED:
        reason = call.ended_reason if call else "not dialed"
        return (
            f"=== Shop: {shop.name} (id: {shop.id}) ===\n"
            f"Call failed: {reason or 'Unknown failure'}\n"
        )
    extracted = (
        call.structured_data.model_dump(exclude_none=True)
        if call.structured_data
        else {}
    )
    duration = (
        f"{call.duration_seconds} seconds"
        if call.duration_seconds is not None
        else "Unknown"
    )
    return (
        f"=== Shop: {shop.name} (id: {shop.id}) ===\n"
        f"Phone: {shop.phone}\n\n"
        f"Transcript:\n{call.transcript or 'No transcript available'}\n\n"
        f"Extracted Data:\n{json.dumps(extracted, indent=2)}\n\n"
        f"Call Summary:\n{call.summary or 'No summary available'}\n\n"
        f"Call Duration: {duration}\n"
    )


def _unquoted_entry(shop: Shop, call: CallRecord | None) -> ShopQuote:
    if call is None:
        notes = "Shop was not contacted."
    elif call.status == CallStatus.FAILED:
        notes = f"Call failed: {call.ended_reason or 'Unknown failure'}"
    else:
        notes = "No usable quote was obtained."
    return ShopQuote(
        shop_id=shop.id,
        shop_name=shop.name,
        price_range=PriceRange(),
        can_do_work=False,
        notes=notes,
        recommendation_score=1,
    )


def _no_quotes_report(
    session: SessionRecord, calls: list[CallRecord], note: str | None
) -> Report:
    by_shop = {call.shop_id: call for call in calls}
    summary = note or (
        "Unfortunately, none of the calls were successful. Please try again or "
        "contact the shops directly."
    )
    return Report(
        summary=summary,
        quotes=[_unquoted_entry(shop, by_shop.get(shop.id)) for shop in session.shops],
        best_pick=BestPick(),
        disclaimer=NO_QUOTES_DISCLAIMER,
    )


def _with_all_shops(
    report: Report, session: SessionRecord, calls: list[CallRecord]
) -> Report:
    """Drop unknown or repeated shop ids and add any shop the engine omitted."""
    by_shop = {call.shop_id: call for call in calls}
    known = {shop.id for shop in session.shops}
    seen: set[str] = set()
    quotes: list[ShopQuote] = []
    for quote in report.quotes:
        if quote.shop_id in known and quote.shop_id not in seen:
            quotes.append(quote)
            seen.add(quote.shop_id)
    for shop in session.shops:
        if shop.id not in seen:
            logger.info(
                "Report omitted shop %s; adding placeholder entry",
                shop.id,
                extra={"session_id": str(session.id)},
            )
            quotes.append(_unquoted_entry(shop, by_shop.get(shop.id)))

    pick = report.best_pick
    best_pick = BestPick(
        by_price=pick.by_price if pick.by_price in known else None,
        by_time=pick.by_time if pick.by_time in known else None,
        overall=pick.overall if pick.overall in known else None,
    )
    return report.model_copy(update={"quotes": quotes, "best_pick": best_pick})
