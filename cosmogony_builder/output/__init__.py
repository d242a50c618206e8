"""
Output generation for the cosmogony builder.
"""

from cosmogony_builder.output.output_generator import OutputGenerator

__all__ = [
    'OutputGenerator'
]
