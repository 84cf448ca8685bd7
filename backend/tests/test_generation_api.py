import time

from academic_scheduler.services.run_lock import get_run_lock_registry


def _wait_for_job(client, job_id, timeout=30.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        payload = client.get(f"/api/generacion/trabajos/{job_id}").json()
        if payload["finalizado"] is not None:
            return payload
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


def test_generate_places_the_bases_de_datos_section(client, db_session, seed_period):
    ids = seed_period(db_session)

    response = client.post("/api/generacion", json={"periodo_id": ids["period_id"]})

    assert response.status_code == 200
    body = response.json()
    assert body["estadoGeneracion"] == "Completo"
    assert body["conflictos"] == 0
    assert body["cursos"] == 1
    assert body["docentes"] == 1
    assert body["aulas"] == 1
    assert body["generacion_id"]
    [assignment] = body["horarios"]
    assert assignment["docente"] == ids["teacher_id"]
    assert assignment["espacio"] == ids["room_id"]
    assert assignment["dia_semana"] == 1
    assert assignment["bloque_horario"] == ids["block_ids"][0]

    stored = client.get(f"/api/periodos/{ids['period_id']}/horarios").json()
    assert [(item["grupo"], item["generacion_id"]) for item in stored] == [(assignment["grupo"], body["generacion_id"])]

    runs = client.get(f"/api/periodos/{ids['period_id']}/generaciones").json()
    assert [run["id"] for run in runs] == [body["generacion_id"]]
    assert runs[0]["summary_status"] == "Completo"


def test_generate_without_persisting_leaves_storage_untouched(client, db_session, seed_period):
    ids = seed_period(db_session)

    response = client.post("/api/generacion", params={"persistir": "false"}, json={"periodo_id": ids["period_id"]})

    assert response.status_code == 200
    assert response.json()["generacion_id"] is None
    assert client.get(f"/api/periodos/{ids['period_id']}/horarios").json() == []


def test_generate_reports_conflicts_for_contention(client, db_session, seed_period):
    ids = seed_period(db_session, sections=2)

    body = client.post(
        "/api/generacion",
        json={"periodo_id": ids["period_id"], "config": {"permitir_huecos": False, "turno_preferente": "M"}},
    ).json()

    assert body["estadoGeneracion"] == "Con Conflictos"
    assert body["conflictos"] == 1
    assert body["cursos"] == 1
    assert body["detalle_conflictos"][0]["motivo"] == "recursos_ocupados"


def test_generate_rejects_invalid_config(client):
    response = client.post(
        "/api/generacion",
        json={"periodo_id": 1, "config": {"prioridad_docente": 9, "turno_preferente": "X"}},
    )

    assert response.status_code == 422
    fields = {item["campo"] for item in response.json()["details"]["errores"]}
    assert {"config.prioridad_docente", "config.turno_preferente"} <= fields


def test_generate_unknown_period(client):
    response = client.post("/api/generacion", json={"periodo_id": 999})

    assert response.status_code == 404
    assert "999" in response.json()["message"]


def test_generate_rejects_a_concurrent_run(client, db_session, seed_period):
    ids = seed_period(db_session)
    get_run_lock_registry().acquire(ids["period_id"])

    response = client.post("/api/generacion", json={"periodo_id": ids["period_id"]})

    assert response.status_code == 409
    assert response.json()["details"] == {"periodo_id": ids["period_id"]}


def test_period_listings_require_an_existing_period(client):
    assert client.get("/api/periodos/999/horarios").status_code == 404
    assert client.get("/api/periodos/999/generaciones").status_code == 404


def test_background_job_flow(client, db_session, seed_period):
    ids = seed_period(db_session)

    submitted = client.post("/api/generacion/trabajos", json={"periodo_id": ids["period_id"]})

    assert submitted.status_code == 202
    job = submitted.json()
    assert job["periodo_id"] == ids["period_id"]
    assert job["estado"] in {"Pending", "Running", "Completed"}

    finished = _wait_for_job(client, job["id"])
    assert finished["estado"] == "Completed"
    assert finished["progreso"] == 100
    assert finished["resultado"]["estadoGeneracion"] == "Completo"

    # Cancelling a finished job is a no-op.
    cancelled = client.delete(f"/api/generacion/trabajos/{job['id']}")
    assert cancelled.status_code == 200
    assert cancelled.json()["estado"] == "Completed"


def test_unknown_job_is_404(client):
    assert client.get("/api/generacion/trabajos/nope").status_code == 404
    assert client.delete("/api/generacion/trabajos/nope").status_code == 404


def test_availability_slots_create_block_records(client, db_session, seed_period):
    ids = seed_period(db_session, teacher_blocks=2)

    response = client.post(
        f"/api/docentes/{ids['teacher_id']}/disponibilidad/franjas",
        json={"periodo_id": ids["period_id"], "dia_semana": 2, "franjas": [1, 0], "preferencia": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["rangos"] == [{"inicio": "07:00", "fin": "08:00"}]
    assert body["bloques"] == [ids["block_ids"][0]]
    assert body["creados"] == 1
    assert body["actualizados"] == 0


def test_availability_overlap_is_rejected_or_combined(client, db_session, seed_period):
    ids = seed_period(db_session, teacher_blocks=2)
    url = f"/api/docentes/{ids['teacher_id']}/disponibilidad/franjas"
    payload = {"periodo_id": ids["period_id"], "dia_semana": 1, "franjas": [0, 1], "preferencia": 1}

    rejected = client.post(url, json=payload)
    assert rejected.status_code == 409
    assert rejected.json()["details"]["solapamientos"]

    combined = client.post(url, json={**payload, "politica": "combinar"})
    assert combined.status_code == 200
    body = combined.json()
    assert body["rangos"] == [{"inicio": "07:00", "fin": "09:00"}]
    assert body["bloques"] == [ids["block_ids"][0]]
    assert body["creados"] == 0
    assert body["actualizados"] == 1


def test_availability_for_unknown_teacher(client, db_session, seed_period):
    ids = seed_period(db_session)

    response = client.post(
        "/api/docentes/999/disponibilidad/franjas",
        json={"periodo_id": ids["period_id"], "dia_semana": 1, "franjas": [0]},
    )

    assert response.status_code == 404


def test_availability_rejects_negative_slots(client, db_session, seed_period):
    ids = seed_period(db_session)

    response = client.post(
        f"/api/docentes/{ids['teacher_id']}/disponibilidad/franjas",
        json={"periodo_id": ids["period_id"], "dia_semana": 1, "franjas": [-1]},
    )

    assert response.status_code == 422
