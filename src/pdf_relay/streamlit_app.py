import os

import requests
import streamlit as st

API_BASE = os.getenv("PDF_RELAY_API_BASE", os.getenv("API_BASE", "http://localhost:3000")).rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("PDF_RELAY_UI_TIMEOUT", "120"))


def _reset_state():
    for key in ["pdf_bytes", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    if "upload_key" in st.session_state:
        st.session_state["upload_key"] += 1
    else:
        st.session_state["upload_key"] = 1


def _generate_pdf(html: str) -> bytes | None:
    """POST the HTML to the relay; on failure store the server's message in session state."""
    try:
        resp = requests.post(f"{API_BASE}/api/generate-pdf", json={"html": html}, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"PDF generation failed: {resp.status_code} {resp.text}"
        return None
    if not resp.headers.get("content-type", "").startswith("application/pdf"):
        st.session_state["error"] = f"Unexpected response type: {resp.headers.get('content-type')}"
        return None
    return resp.content


def main() -> None:
    st.set_page_config(page_title="PDF Relay", page_icon="📄", layout="centered")
    st.title("📄 HTML to PDF")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload an HTML file",
        type=["html", "htm"],  # type: ignore[arg-type]
        key=f"uploader-{st.session_state['upload_key']}",
    )
    default_html = uploaded.getvalue().decode("utf-8", errors="replace") if uploaded else ""
    html = st.text_area("...or paste HTML", value=default_html, height=300)

    if st.button("Generate PDF", type="primary", disabled=not html.strip()):
        st.session_state.pop("error", None)
        with st.spinner("Converting with Adobe PDF Services..."):
            pdf = _generate_pdf(html)
        if pdf is not None:
            st.session_state["pdf_bytes"] = pdf
            st.toast("PDF ready", icon="✅")

    if "pdf_bytes" in st.session_state:
        st.success(f"Conversion complete ({len(st.session_state['pdf_bytes'])} bytes).")
        st.download_button(
            label="Download PDF",
            data=st.session_state["pdf_bytes"],
            file_name="document.pdf",
            mime="application/pdf",
        )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
