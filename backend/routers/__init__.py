from .calculations import router as calculations_router

__all__ = [
    'calculations_router',
]
