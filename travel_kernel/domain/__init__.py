"""Pure domain helpers: time, money rounding and currency conversion."""
