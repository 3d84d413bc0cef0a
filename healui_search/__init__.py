"""
healui_search

Search orchestration for the HealUI physiotherapist marketplace:
filter model, URL sync, suggestions, execution coordinator and the
Streamlit search page.
"""
