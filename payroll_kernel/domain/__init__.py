"""Pure domain value types shared by engines and modules. ZERO I/O."""
