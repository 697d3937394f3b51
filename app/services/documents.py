# app/services/documents.py
from __future__ import annotations

import base64
import io
from typing import Dict

import qrcode  # type: ignore
from jinja2 import Environment, BaseLoader, select_autoescape
from xhtml2pdf import pisa  # type: ignore

from app.models.certificate import Certificate
from app.schemas.template import TemplateDesign
from app.services.certificates import effective_status

_DEFAULT_TEMPLATE = """
<!doctype html>
<html>
  <head>
    <style>
      @page { size: a4 {{ design.orientation.value }}; margin: 1.5cm; }
      body { font-family: {{ design.font_family }}; background-color: {{ design.background_color }}; }
      .frame { border: {{ design.border_width }}px solid {{ design.border_color }}; padding: 28px; text-align: center; }
      h1 { font-size: {{ design.font_size.title }}; }
      .body { font-size: {{ design.font_size.body }}; }
      .footer { font-size: {{ design.font_size.footer }}; }
      .meta { font-size: 10px; color: #555555; }
    </style>
  </head>
  <body>
    <div class="frame">
      {% if design.logo_url %}<img src="{{ design.logo_url }}" style="max-height:80px"><br>{% endif %}
      <h1>{{ cert.header_text }}</h1>
      <p class="body">{{ cert.body_text }}</p>
      {% if cert.grade %}<p class="body">Grade: <b>{{ cert.grade }}</b></p>{% endif %}
      {% if cert.remarks %}<p class="body">{{ cert.remarks }}</p>{% endif %}
      <p class="footer">{{ cert.footer_text }}</p>
      {% if design.signature_url %}<img src="{{ design.signature_url }}" style="max-height:60px"><br>{% endif %}
      {% if status != "ISSUED" %}<p class="body"><b>{{ status }}</b></p>{% endif %}
      <img src="{{ qr_data_uri }}" style="height:110px">
      <div class="meta">
        Certificate {{ cert.certificate_number }} &middot; issued {{ cert.issue_date.isoformat() }}
        {% if cert.expiry_date %}&middot; valid until {{ cert.expiry_date.isoformat() }}{% endif %}<br>
        Verify at: {{ verify_url }}<br>
        Signature: {{ cert.digital_signature }}
      </div>
    </div>
  </body>
</html>
""".strip()

_env = Environment(
    loader=BaseLoader(),
    autoescape=select_autoescape(["html", "xml"], default_for_string=True),
    enable_async=False,
)

def _qr_data_uri(text: str) -> str:
    img = qrcode.make(text)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"

def verify_url(base_url: str, certificate_number: str) -> str:
    return f"{base_url.rstrip('/')}/api/v1/verify/{certificate_number}"

def build_certificate_html(cert: Certificate, *, verify_link: str) -> str:
    design = TemplateDesign.model_validate(cert.design_snapshot or {})
    ctx: Dict = dict(
        cert=cert,
        design=design,
        status=effective_status(cert).value,
        verify_url=verify_link,
        qr_data_uri=_qr_data_uri(verify_link),
    )
    return _env.from_string(_DEFAULT_TEMPLATE).render(**ctx)

def html_to_pdf_bytes(html: str) -> bytes:
    out = io.BytesIO()
    result = pisa.CreatePDF(io.StringIO(html), dest=out)
    if result.err:
        raise RuntimeError(f"PDF rendering failed ({result.err} errors)")
    return out.getvalue()

def render_pdf(cert: Certificate, *, base_url: str) -> bytes:
    return html_to_pdf_bytes(build_certificate_html(cert, verify_link=verify_url(base_url, cert.certificate_number)))

def filename_for(cert: Certificate) -> str:
    return f"certificate_{cert.certificate_number}.pdf"
