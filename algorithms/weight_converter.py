class WeightConverter:
    """Utility for converting between kg and lb."""

    LB_TO_KG = 0.45359237

    @staticmethod
    def to_kg(weight: float, unit: str) -> float:
        """Return ``weight`` entered in ``unit`` expressed in kilograms, unrounded."""
        if unit == "lb":
            return weight * WeightConverter.LB_TO_KG
        return weight

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg / WeightConverter.LB_TO_KG, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb * WeightConverter.LB_TO_KG, 2)
