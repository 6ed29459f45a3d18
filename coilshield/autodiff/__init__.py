"""JAX field backend."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from coilshield.autodiff.jax_field import (
        evaluate_field_points_jax as evaluate_field_points_jax,
    )
    from coilshield.autodiff.jax_field import field_jacobian_jax as field_jacobian_jax
else:
    try:
        from coilshield.autodiff.jax_field import (
            evaluate_field_points_jax as _evaluate_field_points_jax,
        )
        from coilshield.autodiff.jax_field import field_jacobian_jax as _field_jacobian_jax
    except ModuleNotFoundError as exc:
        missing_name = getattr(exc, "name", None)
        if missing_name not in ("jax", "jaxlib"):
            raise
        _exc = exc

        def evaluate_field_points_jax(*_args: Any, **_kwargs: Any) -> Any:
            raise ModuleNotFoundError(
                "JAX is required for evaluate_field_points_jax. "
                "Install `jax` and `jaxlib` or use the numba backend."
            ) from _exc

        def field_jacobian_jax(*_args: Any, **_kwargs: Any) -> Any:
            raise ModuleNotFoundError(
                "JAX is required for field_jacobian_jax. Install `jax` and `jaxlib`."
            ) from _exc

    else:
        evaluate_field_points_jax = _evaluate_field_points_jax
        field_jacobian_jax = _field_jacobian_jax

__all__ = ["evaluate_field_points_jax", "field_jacobian_jax"]
