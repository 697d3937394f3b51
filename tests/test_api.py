import datetime as dt
import logging

from app.models.certificate import Certificate
from app.services import certificates


def _generate(client, headers, **body):
    return client.post("/api/v1/certificates/generate", json=body, headers=headers)


def test_requires_token_and_admin_role(client, seed, trainer_headers):
    assert client.get("/api/v1/certificates").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/v1/certificates", headers=bad).status_code == 401
    assert client.get("/api/v1/certificates", headers=trainer_headers).status_code == 403
    assert client.get("/api/v1/certificate-templates", headers=trainer_headers).status_code == 403


def test_health_is_public(client, seed):
    r = client.get("/api/v1/health")
    assert r.status_code == 200


def test_generate_returns_camel_case(client, seed, admin_headers):
    r = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id, grade="A")
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["certificateNumber"].startswith("CERT-")
    assert data["candidateName"] == "Ada Lovelace"
    assert data["status"] == "ISSUED"
    assert data["issuedBy"] == 1
    assert "digitalSignature" in data


def test_error_body_shape(client, seed, admin_headers):
    _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id)
    r = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "DuplicateActiveCertificate"
    assert body["message"]
    assert body["details"]["candidateId"] == seed.ada

    r = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.bare_course_id)
    assert r.status_code == 422
    assert r.json()["code"] == "NoActiveTemplate"

    r = client.get("/api/v1/certificates/9999", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "NotFound"


def test_revoke_reissue_and_public_verify(client, seed, admin_headers):
    cert = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id).json()

    r = client.put(f"/api/v1/certificates/{cert['id']}/revoke", json={}, headers=admin_headers)
    assert r.status_code == 422
    assert r.json()["code"] == "ValidationError"

    r = client.put(f"/api/v1/certificates/{cert['id']}/revoke", json={"reason": "wrong course"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "REVOKED"
    r = client.put(f"/api/v1/certificates/{cert['id']}/revoke", json={"reason": "again"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "AlreadyRevoked"

    r = client.post(f"/api/v1/certificates/{cert['id']}/reissue", headers=admin_headers)
    assert r.status_code == 201
    new = r.json()
    assert new["supersedes"] == cert["id"]

    # verificação não exige token
    r = client.get(f"/api/v1/verify/{cert['certificateNumber']}")
    assert r.status_code == 200
    v = r.json()
    assert v["status"] == "REVOKED"
    assert v["isRevoked"] is True
    assert v["revocationReason"] == "wrong course"
    assert v["supersededByNumber"] == new["certificateNumber"]

    r = client.post("/api/v1/certificates/verify", json={"certificateNumber": new["certificateNumber"]})
    assert r.status_code == 200
    assert r.json()["isValid"] is True

    r = client.get("/api/v1/verify/CERT-1900-000001")
    assert r.status_code == 404

    r = client.get(f"/api/v1/certificates/{new['id']}/history", headers=admin_headers)
    assert [c["id"] for c in r.json()] == [cert["id"], new["id"]]


def test_tampered_certificate_is_reported(client, session_factory, seed, admin_headers):
    cert = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id).json()
    with session_factory() as s:
        row = s.get(Certificate, cert["id"])
        row.body_text = "This is to certify that Mallory has completed everything"
        s.commit()

    r = client.get(f"/api/v1/verify/{cert['certificateNumber']}")
    assert r.status_code == 409
    assert r.json()["code"] == "TamperDetected"


def test_list_filters_and_statistics(client, session_factory, seed, admin_headers):
    with session_factory() as s:
        certificates.generate(s, candidate_id=seed.ada, course_id=seed.course_id)
        certificates.generate(s, candidate_id=seed.alan, course_id=seed.course_id,
                              issue_date=dt.date(2020, 1, 1), expiry_date=dt.date(2020, 6, 1))

    r = client.get("/api/v1/certificates", params={"status": "expired"}, headers=admin_headers)
    page = r.json()
    assert page["total"] == 1
    assert page["items"][0]["status"] == "EXPIRED"

    r = client.get("/api/v1/certificates", params={"status": "bogus"}, headers=admin_headers)
    assert r.status_code == 422

    r = client.get("/api/v1/certificates/statistics", headers=admin_headers)
    assert r.json() == {"total": 2, "issued": 1, "revoked": 0, "expired": 1}


def test_bulk_endpoint(client, seed, admin_headers):
    r = client.post(
        "/api/v1/certificates/bulk-generate",
        json={"templateId": seed.template_id, "courseId": seed.course_id, "candidateIds": [seed.ada, 999]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    data = r.json()
    assert data["succeeded"] == 1 and data["failed"] == 1
    assert data["results"][1]["error"]["code"] == "NotFound"


def test_certificate_request_flow(client, seed, admin_headers, trainer_headers, candidate_headers):
    body = {"candidateId": seed.ada, "courseId": seed.course_id, "assessmentScore": 91}
    assert client.post("/api/v1/certificate-requests", json=body, headers=candidate_headers).status_code == 403

    r = client.post("/api/v1/certificate-requests", json=body, headers=trainer_headers)
    assert r.status_code == 201, r.text
    req = r.json()
    assert req["status"] == "PENDING"
    assert req["trainerId"] == 7

    r = client.get("/api/v1/certificate-requests", headers=admin_headers)
    assert [x["id"] for x in r.json()["items"]] == [req["id"]]

    r = client.put(f"/api/v1/certificate-requests/{req['id']}", json={"action": "reject", "grade": "A"},
                   headers=admin_headers)
    assert r.status_code == 422

    r = client.put(f"/api/v1/certificate-requests/{req['id']}", json={"action": "approve", "grade": "A"},
                   headers=admin_headers)
    assert r.status_code == 200, r.text
    result = r.json()
    assert result["request"]["status"] == "APPROVED"
    assert result["certificate"]["grade"] == "A"
    assert result["request"]["certificateId"] == result["certificate"]["id"]

    r = client.put(f"/api/v1/certificate-requests/{req['id']}", json={"action": "reject"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "InvalidState"

    r = client.get("/api/v1/certificate-stats", headers=admin_headers)
    assert r.json() == {"pending": 0, "approved": 1, "rejected": 0}


def test_template_endpoints(client, seed, admin_headers):
    r = client.post("/api/v1/certificate-templates", json={
        "name": "Workshop",
        "design": {"backgroundColor": "#fafafa", "orientation": "portrait"},
        "content": {"header": "Workshop", "body": "{candidateName} attended {courseName}", "footer": ""},
    }, headers=admin_headers)
    assert r.status_code == 201, r.text
    tpl = r.json()
    assert tpl["placeholders"] == ["candidateName", "courseName"]

    r = client.post("/api/v1/certificate-templates", json={"name": "Bad", "design": {"borderColor": "blue"}},
                    headers=admin_headers)
    assert r.status_code == 422

    r = client.post(f"/api/v1/certificate-templates/{tpl['id']}/preview",
                    json={"values": {"candidateName": "Sam"}}, headers=admin_headers)
    assert r.json()["body"] == "Sam attended Sample Course"

    _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id, templateId=tpl["id"])
    r = client.delete(f"/api/v1/certificate-templates/{tpl['id']}", headers=admin_headers)
    assert r.status_code == 409
    assert "used by 1 certificate" in r.json()["message"]

    r = client.get("/api/v1/certificate-templates", params={"activeOnly": "true"}, headers=admin_headers)
    assert {t["id"] for t in r.json()} == {seed.template_id, seed.other_template_id, tpl["id"]}

    r = client.delete(f"/api/v1/certificate-templates/{seed.other_template_id}", headers=admin_headers)
    assert r.status_code == 204


def test_download_pdf_and_send(client, seed, admin_headers):
    cert = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id).json()

    r = client.get(f"/api/v1/certificates/{cert['id']}/download", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert cert["certificateNumber"] in r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")

    r = client.post(f"/api/v1/certificates/{cert['id']}/send", json={}, headers=admin_headers)
    assert r.status_code == 202
    assert r.json() == {"certificateId": cert["id"], "email": "ada@example.com", "status": "queued"}

    client.put(f"/api/v1/certificates/{cert['id']}/revoke", json={"reason": "void"}, headers=admin_headers)
    r = client.post(f"/api/v1/certificates/{cert['id']}/send", json={"email": "x@example.com"}, headers=admin_headers)
    assert r.status_code == 409


def test_verify_with_qr_code_payload(client, seed, admin_headers):
    cert = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id).json()
    qr = f"http://testserver/api/v1/verify/{cert['certificateNumber']}"

    r = client.post("/api/v1/certificates/verify", json={"qrCode": qr})
    assert r.status_code == 200
    assert r.json()["certificateNumber"] == cert["certificateNumber"]

    assert client.post("/api/v1/certificates/verify", json={}).status_code == 422
    r = client.post("/api/v1/certificates/verify", json={"qrCode": "http://testserver/api/v1/verify/NOPE"})
    assert r.status_code == 404


def test_send_hands_pdf_to_external_transport(client, seed, admin_headers, caplog):
    cert = _generate(client, admin_headers, candidateId=seed.ada, courseId=seed.course_id).json()
    with caplog.at_level(logging.INFO, logger="app.services.delivery"):
        r = client.post(f"/api/v1/certificates/{cert['id']}/send", json={"email": "hr@example.com"},
                        headers=admin_headers)
    assert r.status_code == 202
    assert f"handing off certificate {cert['certificateNumber']} for hr@example.com to external transport" in caplog.text
