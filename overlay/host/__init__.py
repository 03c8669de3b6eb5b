"""Host-side adapters.

`ports` declares the narrow interfaces the controller talks to; `simulated` and
`loader` provide an in-process host used by the dev server and the tests.
"""
