"""Email bodies for pending and confirmed reservations."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from html import escape
from typing import Any, Optional

from flat_booking.schemas.reservations import Reservation

BRAND = {
    "name": "Sucesso Flat’s",
    "logo_url": "https://sucessoflats.vercel.app/public/logo-sucesso.png",
    "site": "https://sucessoflats.vercel.app",
    "support_email": "sucessoflats@gmail.com",
    "whatsapp": "+55 86 9 8175-0070",
    "address": "Teresina/PI",
    "primary": "#C9A44A",
    "text": "#0F172A",
    "subtle": "#64748B",
    "bg": "#F7F7F9",
    "border": "#E5E7EB",
}

CHECK_TIMES_LINE = "Check-in: 14:00 • Check-out: 12:00"


def format_brl(value: Any) -> str:
    """
    Format an amount as Brazilian reais.

    Example:
        >>> format_brl(Decimal("1234.5"))
        'R$ 1.234,50'
    """
    amount = Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    integer, _, cents = f"{amount:,.2f}".partition(".")
    return f"R$ {integer.replace(',', '.')},{cents}"


def _period(reservation: Reservation) -> str:
    return f"{reservation.checkin} → {reservation.checkout}"


def pending_subject(reservation: Reservation) -> str:
    return f"Reserva pendente • {reservation.flat_name}"


def pending_text(reservation: Reservation, hold_minutes: int) -> str:
    lines = [
        f"Olá, {reservation.guest_name}.",
        f"Recebemos sua solicitação de reserva no {reservation.flat_name}.",
        f"Período: {_period(reservation)} ({reservation.nights} noite(s))",
        f"Total: {format_brl(reservation.total)}",
        "",
    ]
    if hold_minutes > 0:
        lines += [
            f"Sua reserva está PENDENTE por até {hold_minutes} minutos, até a confirmação do pagamento.",
            "Após esse prazo, as datas podem ser liberadas automaticamente.",
        ]
    else:
        lines.append("Sua reserva está PENDENTE até a confirmação do pagamento.")
    lines += ["", BRAND["name"]]
    return "\n".join(lines)


def confirmation_subject(reservation: Reservation, resend: bool = False) -> str:
    prefix = "Reenvio — Reserva confirmada" if resend else "Reserva confirmada —"
    return f"{prefix} {_period(reservation)}"


def stay_description(reservation: Reservation) -> str:
    """Description embedded in the .ics attachment."""
    return "\n".join(
        [
            "Reserva CONFIRMADA",
            f"Hóspede: {reservation.guest_name}",
            f"Período: {_period(reservation)}",
            CHECK_TIMES_LINE,
            f"Total: {format_brl(reservation.total)}",
            "",
            "Política: Cancelamento grátis até 48h antes.",
            BRAND["name"],
        ]
    )


def confirmation_text(reservation: Reservation, resend: bool = False) -> str:
    opening = "Reenvio da confirmação da sua reserva." if resend else "Sua reserva foi CONFIRMADA!"
    return "\n".join(
        [
            f"Olá, {reservation.guest_name}!",
            opening,
            "",
            f"Flat: {reservation.flat_name or reservation.flat_slug}",
            f"Período: {_period(reservation)}",
            CHECK_TIMES_LINE,
            f"Total: {format_brl(reservation.total)}",
            "",
            "Instruções de check-in:",
            "• Apresente documento com foto na chegada;",
            "• Silêncio após 22h.",
            "",
            "Política: Cancelamento grátis até 48h antes.",
            "",
            'Adicione ao seu calendário com o anexo "sucessoflats.ics".',
            "",
            "Qualquer dúvida, fale com a gente:",
            f"WhatsApp: {BRAND['whatsapp']}",
            f"E-mail: {BRAND['support_email']}",
            f"{BRAND['name']} — {BRAND['address']}",
        ]
    )


def confirmation_html(reservation: Reservation, resend: bool = False, brand: Optional[dict] = None) -> str:
    b = {**BRAND, **(brand or {})}
    heading = "Reenvio da confirmação" if resend else "Reserva confirmada"
    rows = [
        ("Flat", reservation.flat_name or reservation.flat_slug),
        ("Período", _period(reservation)),
        ("Check-in", "14:00"),
        ("Check-out", "12:00"),
        ("Total", format_brl(reservation.total)),
    ]
    details = "\n".join(
        f'<tr><td style="padding:6px 0;color:{b["subtle"]}">{escape(label)}</td>'
        f'<td style="padding:6px 0;text-align:right"><strong>{escape(str(value))}</strong></td></tr>'
        for label, value in rows
    )
    return f"""<!doctype html>
<html lang="pt-BR">
<head><meta charset="utf-8"><title>{escape(heading)}</title></head>
<body style="margin:0;padding:0;background:{b['bg']};color:{b['text']};font-family:Helvetica,Arial,sans-serif">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0">
    <tr><td align="center" style="padding:24px">
      <table role="presentation" width="560" cellpadding="0" cellspacing="0"
             style="background:#FFFFFF;border:1px solid {b['border']};border-radius:12px">
        <tr><td style="padding:24px">
          <img src="{escape(b['logo_url'])}" alt="{escape(b['name'])}" height="40">
          <h1 style="color:{b['primary']};font-size:22px">{escape(heading)}</h1>
          <p>Olá, <strong>{escape(reservation.guest_name or '')}</strong>!</p>
          <table role="presentation" width="100%" cellpadding="0" cellspacing="0">
{details}
          </table>
          <p>Adicione ao seu calendário com o anexo <code>sucessoflats.ics</code>.</p>
          <p style="color:{b['subtle']};font-size:13px">
            Política: Cancelamento grátis até 48h antes.<br>
            WhatsApp: {escape(b['whatsapp'])} • E-mail: {escape(b['support_email'])}<br>
            {escape(b['name'])} — {escape(b['address'])}
          </p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def calendar_summary(reservation: Reservation) -> str:
    return f"Reserva confirmada — {reservation.guest_name}"


def calendar_description(reservation: Reservation) -> str:
    return "\n".join(
        [
            f"Flat: {reservation.flat_slug}",
            f"Período: {_period(reservation)}",
            f"Total: {format_brl(reservation.total)}",
        ]
    )


def ics_summary(reservation: Reservation) -> str:
    return f"Estadia — {BRAND['name']} ({reservation.flat_slug})"
