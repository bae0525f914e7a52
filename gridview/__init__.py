"""gridview: a client-side tabular view engine with a Streamlit front-end."""

__version__ = "0.1.0"
