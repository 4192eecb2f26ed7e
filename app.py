from __future__ import annotations
import logging
import streamlit as st
import pandas as pd
from analisis import actions
from analisis.actions import ActionResult, PendingDelete, PendingMerge
from analisis.dedupe import find_similar_students
from analisis.export import (export_filename, export_to_csv, export_to_excel_bytes, template_csv, status_label)
from analisis.grades import GRADES, grade_for_marks, reference_table
from analisis.ingest import parse_grade, parse_level, parse_marks, parse_upload
from analisis.utils import clean_display
from analisis.models import RecordSet, SUBJECTS, SEVERITIES, Student
from analisis.report import (
    ALL, FilterState, achievement_stats, class_options, filter_results, form_options,
    incomplete_count, pass_count, pbd_view, severity_distribution, summary_stats,
    tp_class_breakdown, tp_distribution, uasa_class_breakdown, uasa_student_table, uasa_view,
    SEVERITY_LABELS,
)
from analisis.scoring import analyze_all, results_to_frame
from analisis.storage import JsonStudentStore, StorageError, storage_mode

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("analisis.app")

st.set_page_config(page_title="Sistem Analisis PBD & UASA", layout="wide")
st.title("Sistem Analisis PBD & UASA")
# =========================

# State
# =========================
def _store() -> JsonStudentStore:
    if "store" not in st.session_state:
        st.session_state["store"] = JsonStudentStore()
    return st.session_state["store"]


def _load_records() -> RecordSet:
    try:
        return RecordSet(tuple(_store().fetch_all()))
    except StorageError as e:
        logger.error("Load failed: %s", e)
        st.error(f"Gagal mengambil data: {e}")
        return RecordSet()


def _records() -> RecordSet:
    if "records" not in st.session_state:
        st.session_state["records"] = _load_records()
    return st.session_state["records"]


def _commit(result: ActionResult) -> bool:
    # in-memory first, then storage; a failed write is reported, not rolled back
    st.session_state["records"] = result.records
    try:
        actions.apply(_store(), result)
    except StorageError as e:
        logger.error("Persist failed: %s", e)
        st.session_state["flash"] = ("error", f"Gagal menyimpan ke storan: {e}")
        return False
    if result.message:
        st.session_state["flash"] = ("success", result.message)
    return True


def _label(s: Student) -> str:
    return f"{s.name} | {s.class_name} | {s.subject}"


def _students_frame(students) -> pd.DataFrame:
    return pd.DataFrame([{
        "Nama Murid": s.name,
        "Kelas": s.class_name,
        "Subjek": s.subject,
        "Markah": s.marks,
        "Gred UASA": s.uasa_grade or "",
        "TP PBD": s.pbd_tp or "",
    } for s in students])


records = _records()
students = list(records.students)
results = analyze_all(students)

flash = st.session_state.pop("flash", None)
if flash:
    kind, msg = flash
    (st.error if kind == "error" else st.success)(msg)
# =========================

# Sidebar: import / templates / data
# =========================
with st.sidebar:
    st.caption(f"Storan: {storage_mode(_store())}")
    st.metric("Rekod", len(students))

    st.subheader("Muat naik data")
    upload = st.file_uploader("Fail CSV / XLSX", type=["csv", "xlsx"], accept_multiple_files=False)
    if upload is not None and st.button("Import", type="primary"):
        try:
            parsed = parse_upload(upload.name, upload.getvalue())
        except ValueError as e:
            st.error(f"Ralat semasa memproses fail: {e}")
            parsed = []
        if not parsed:
            st.warning("Format fail tidak sah atau tiada data.")
        else:
            _commit(actions.import_students(records, parsed))
            st.rerun()

    st.subheader("Templat")
    for kind, label in [("all", "Templat Penuh"), ("uasa", "Templat UASA"), ("pbd", "Templat PBD")]:
        fname, text = template_csv(kind)
        st.download_button(label, data=text.encode("utf-8"), file_name=fname, mime="text/csv", key=f"tpl_{kind}")

    st.subheader("Padam semua data")
    sure = st.checkbox("Saya pasti mahu memadam semua rekod")
    if st.button("Padam semua", disabled=not sure):
        try:
            _store().clear()
            st.session_state["records"] = RecordSet()
            st.session_state.pop("dup_pairs", None)
            st.session_state["flash"] = ("success", "Semua data telah dipadam.")
        except StorageError as e:
            st.session_state["flash"] = ("error", f"Gagal memadam data sepenuhnya: {e}")
            st.session_state["records"] = _load_records()
        st.rerun()

tab_gap, tab_uasa, tab_pbd, tab_edit, tab_dup, tab_ref = st.tabs(
    ["Analisis Jurang", "Analisis UASA", "Analisis PBD", "Kemas Kini Rekod", "Semak Pendua", "Rujukan"]
)
# =========================

# Gap analysis
# =========================
with tab_gap:
    n_incomplete = incomplete_count(students)
    if n_incomplete:
        st.warning(f"{n_incomplete} rekod tidak lengkap (hanya Gred atau hanya TP).")

    c1, c2, c3, c4, c5 = st.columns(5)
    with c1:
        q = st.text_input("Cari nama", value="", key="g_search")
    with c2:
        cls = st.selectbox("Kelas", ["(semua)"] + class_options(students), key="g_class")
    with c3:
        subj = st.selectbox("Subjek", [ALL] + SUBJECTS, key="g_subj", format_func=lambda x: "Semua Subjek" if x == ALL else x)
    with c4:
        sev = st.selectbox("Status", [ALL] + list(SEVERITIES),
                           format_func=lambda x: "Semua" if x == ALL else SEVERITY_LABELS[x])
    with c5:
        min_gap = st.number_input("Jurang minimum", min_value=0, max_value=5, value=0, step=1)
    only_incomplete = st.checkbox("Semak data tidak lengkap sahaja")

    tp_range = st.session_state.get("tp_range")
    if tp_range:
        st.info(f"Penapis TP {tp_range[0]}-{tp_range[1]} daripada Analisis PBD")
        if st.button("Buang penapis TP"):
            st.session_state.pop("tp_range", None)
            st.rerun()

    filters = FilterState(
        search=q,
        class_name="" if cls == "(semua)" else cls,
        subject=subj,
        severity=sev,
        min_gap=int(min_gap),
        tp_range=tuple(tp_range) if tp_range else None,
        incomplete_only=only_incomplete,
    )
    view = filter_results(results, filters)
    stats = summary_stats(view)

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Jumlah", stats["total"])
    m2.metric("Kritikal", stats["critical"])
    m3.metric("Amaran", stats["warning"])
    m4.metric("Purata TP", stats["average_tp"])

    if view:
        g1, g2 = st.columns(2)
        with g1:
            st.caption("Analisis Jurang Prestasi")
            st.bar_chart(severity_distribution(view).set_index("Status"))
        with g2:
            st.caption("Taburan TP")
            st.bar_chart(tp_distribution([r.student for r in view]).set_index("TP"))

        table = results_to_frame(view).drop(columns=["id", "Arah"])
        table["Status"] = table["Status"].map(status_label)
        st.dataframe(table, width="stretch", hide_index=True)

        d1, d2 = st.columns(2)
        with d1:
            st.download_button("Eksport CSV", data=export_to_csv(view).encode("utf-8"),
                               file_name=export_filename(), mime="text/csv")
        with d2:
            xbytes = export_to_excel_bytes(view, uasa_class_breakdown(uasa_view(students)),
                                           st.session_state.get("dup_pairs"))
            st.download_button("Eksport Excel", data=xbytes, file_name="analisis_data_murid.xlsx",
                               mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    else:
        st.info("Tiada data untuk dipaparkan.")
# =========================

# UASA
# =========================
with tab_uasa:
    u1, u2 = st.columns(2)
    with u1:
        u_form = st.selectbox("Tingkatan", [ALL] + form_options(students), key="u_form",
                              format_func=lambda x: "Semua Tingkatan" if x == ALL else f"Tingkatan {x}")
    with u2:
        u_subj = st.selectbox("Subjek", [ALL] + SUBJECTS, key="u_subj",
                              format_func=lambda x: "Semua Subjek" if x == ALL else x)

    graded = uasa_view(students, u_form, u_subj)
    st.caption(f"{len(graded)} Data Direkodkan, {pass_count(graded)} lulus")
    ach = achievement_stats(graded)
    st.dataframe(ach, width="stretch", hide_index=True)
    st.bar_chart(ach.set_index("Gred")["Bilangan"])

    st.subheader("Pecahan Mengikut Kelas (GPMP)")
    st.dataframe(uasa_class_breakdown(graded), width="stretch", hide_index=True)

    s1, s2 = st.columns(2)
    with s1:
        u_search = st.text_input("Cari murid", key="u_search")
    with s2:
        u_grade = st.selectbox("Gred", [ALL] + GRADES, key="u_grade",
                               format_func=lambda x: "Semua Gred" if x == ALL else x)
    st.dataframe(_students_frame(uasa_student_table(graded, u_search, u_grade)), width="stretch", hide_index=True)
# =========================

# PBD
# =========================
with tab_pbd:
    p1, p2 = st.columns(2)
    with p1:
        p_form = st.selectbox("Tingkatan", [ALL] + form_options(students), key="p_form",
                              format_func=lambda x: "Semua Tingkatan" if x == ALL else f"Tingkatan {x}")
    with p2:
        p_subj = st.selectbox("Subjek", [ALL] + SUBJECTS, key="p_subj",
                              format_func=lambda x: "Semua Subjek" if x == ALL else x)

    leveled = pbd_view(students, p_form, p_subj)
    st.bar_chart(tp_distribution(leveled).set_index("TP"))
    st.dataframe(tp_class_breakdown(leveled), width="stretch", hide_index=True)

    lo, hi = st.slider("Julat TP", min_value=1, max_value=6, value=(1, 2))
    if st.button("Lihat murid dalam Analisis Jurang"):
        st.session_state["tp_range"] = (lo, hi)
        st.session_state["flash"] = ("success", f"Penapis TP {lo}-{hi} digunakan pada Analisis Jurang.")
        st.rerun()
# =========================

# Edit / delete
# =========================
with tab_edit:
    pending = st.session_state.get("pending_merge")
    if isinstance(pending, PendingMerge):
        st.warning(
            f'Nama "{pending.edited.name}" (atau yang serupa) sudah wujud dalam kelas ini. '
            "Adakah anda mahu menggabungkan data murid ini?"
        )
        b1, b2 = st.columns(2)
        if b1.button("Gabungkan", type="primary"):
            _commit(actions.confirm_merge(records, pending))
            st.session_state.pop("pending_merge", None)
            st.rerun()
        if b2.button("Batal"):
            _commit(actions.decline_merge(records, pending))
            st.session_state.pop("pending_merge", None)
            st.rerun()

    by_id = {s.id: s for s in students}
    if not by_id:
        st.info("Tiada rekod.")
    else:
        sel = st.selectbox("Pilih rekod", list(by_id.keys()), format_func=lambda i: _label(by_id[i]))
        cur = by_id[sel]
        with st.form("edit_form"):
            e1, e2, e3 = st.columns(3)
            name = e1.text_input("Nama", value=cur.name)
            klass = e2.text_input("Kelas", value=cur.class_name, key=f"e_class_{sel}")
            subj_opts = SUBJECTS if cur.subject in SUBJECTS else SUBJECTS + [cur.subject]
            subject = e3.selectbox("Subjek", subj_opts, index=subj_opts.index(cur.subject), key=f"e_subj_{sel}")
            f1, f2, f3 = st.columns(3)
            grade_opts = [""] + GRADES
            if cur.uasa_grade and cur.uasa_grade not in grade_opts:
                grade_opts.append(cur.uasa_grade)
            grade = f1.selectbox("Gred UASA", grade_opts, index=grade_opts.index(cur.uasa_grade or ""))
            tp = f2.number_input("TP PBD (0 = tiada)", min_value=0, max_value=6, value=int(cur.pbd_tp or 0))
            marks = f3.text_input("Markah", value="" if cur.marks is None else str(cur.marks))
            submitted = st.form_submit_button("Simpan")

        band = grade_for_marks(cur.marks)
        if band and band != (cur.uasa_grade or ""):
            st.caption(f"Gred ikut julat markah: {band} (direkod: {cur.uasa_grade or '-'})")

        if submitted:
            edited = cur.with_changes(
                name=clean_display(name),
                class_name=klass.strip().upper(),
                subject=subject,
                uasa_grade=parse_grade(grade),
                pbd_tp=parse_level(str(tp)),
                marks=parse_marks(marks),
            )
            if not edited.name or not edited.class_name:
                st.error("Nama dan kelas diperlukan.")
            else:
                out = actions.propose_edit(records, edited)
                if isinstance(out, PendingMerge):
                    st.session_state["pending_merge"] = out
                else:
                    _commit(out)
                st.rerun()

        if st.button("Padam rekod ini"):
            _commit(actions.delete_student(records, cur.id))
            st.rerun()

    st.subheader("Padam pukal")
    bulk = st.multiselect("Rekod", list(by_id.keys()), format_func=lambda i: _label(by_id[i]))
    pend_del = st.session_state.get("pending_delete")
    if bulk and st.button(f"Padam {len(bulk)} rekod"):
        st.session_state["pending_delete"] = actions.request_bulk_delete(bulk)
        st.rerun()
    if isinstance(pend_del, PendingDelete):
        st.warning(f"Adakah anda pasti mahu memadam {len(pend_del.ids)} rekod?")
        k1, k2 = st.columns(2)
        if k1.button("Ya, padam", type="primary"):
            _commit(actions.confirm_bulk_delete(records, pend_del))
            st.session_state.pop("pending_delete", None)
            st.rerun()
        if k2.button("Tidak"):
            st.session_state.pop("pending_delete", None)
            st.rerun()
# =========================

# Duplicates
# =========================
with tab_dup:
    a1, a2 = st.columns(2)
    if a1.button("Cari pendua"):
        with st.spinner("Sedang memproses..."):
            st.session_state["dup_pairs"] = find_similar_students(students)
    if a2.button("Gabungkan pendua tepat"):
        _commit(actions.clean_duplicates(records))
        st.session_state.pop("dup_pairs", None)
        st.rerun()

    pairs = st.session_state.get("dup_pairs")
    if pairs is not None:
        if not pairs:
            st.success("Tiada pendua ditemui.")
        for idx, p in enumerate(pairs):
            with st.container(border=True):
                st.write(f"**{p.reason}** | {p.original.class_name} / {p.original.subject}")
                st.dataframe(_students_frame([p.original, p.match]), width="stretch", hide_index=True)
                k1, k2, k3 = st.columns(3)
                if k1.button("Simpan atas", key=f"keep_o_{idx}"):
                    _commit(actions.resolve_duplicate(records, p.original, p.match))
                    st.session_state["dup_pairs"] = actions.forget_pairs(pairs, p.original.id, p.match.id)
                    st.rerun()
                if k2.button("Simpan bawah", key=f"keep_m_{idx}"):
                    _commit(actions.resolve_duplicate(records, p.match, p.original))
                    st.session_state["dup_pairs"] = actions.forget_pairs(pairs, p.original.id, p.match.id)
                    st.rerun()
                if k3.button("Abaikan", key=f"ignore_{idx}"):
                    st.session_state["dup_pairs"] = actions.ignore_duplicate(pairs, idx)
                    st.rerun()
# =========================

# Reference
# =========================
with tab_ref:
    st.subheader("Panduan Rujukan")
    st.dataframe(reference_table(), width="stretch", hide_index=True)
    st.caption("GPMP = (Σ Bil. Murid × Nilai Gred) / Jumlah Murid, A=1 … F=6. Nilai lebih kecil lebih baik.")
