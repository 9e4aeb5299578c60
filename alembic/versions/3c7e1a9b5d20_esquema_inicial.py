"""esquema_inicial

Crea las tablas de operaciones de campo (usuarios, propiedades,
cuadrillas, órdenes de trabajo y su historial) y de facturación
(planes, suscripciones, pagos).

Revision ID: 3c7e1a9b5d20
Revises:
Create Date: 2026-03-02 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c7e1a9b5d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'usuario',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(200), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(200), nullable=False),
        sa.Column('nombre_completo', sa.String(300), nullable=True),
        sa.Column('telefono', sa.String(50), nullable=True),
        sa.Column('rol', sa.String(50), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ultimo_acceso', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'propiedad',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('usuario_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('alias', sa.String(100), nullable=True),
        sa.Column('direccion', sa.String(300), nullable=False),
        sa.Column('ciudad', sa.String(100), nullable=True),
        sa.Column('provincia', sa.String(100), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('zona_horaria', sa.String(64), nullable=True),
        sa.Column('activa', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'cuadrilla',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('nombre', sa.String(150), nullable=False),
        sa.Column('zona', sa.String(100), nullable=True),
        sa.Column('estado', sa.String(20), nullable=False, server_default='desocupado'),
        sa.Column('miembros', sa.JSON(), nullable=False),
        sa.Column('ordenes_activas', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('progreso_actual', sa.Integer(), nullable=True),
        sa.Column('notas', sa.String(1000), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'plan',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('nombre', sa.String(150), nullable=False),
        sa.Column('descripcion', sa.String(1000), nullable=True),
        sa.Column('precio', sa.Numeric(12, 2), nullable=False),
        sa.Column('moneda', sa.String(3), nullable=False, server_default='ARS'),
        sa.Column('periodo_dias', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('categoria_servicio', sa.String(100), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'suscripcion',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('usuario_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('plan_id', sa.String(36), sa.ForeignKey('plan.id'), nullable=False),
        sa.Column('propiedad_id', sa.Integer(), sa.ForeignKey('propiedad.id'), nullable=True),
        sa.Column('estado', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('dia_facturacion', sa.Integer(), nullable=True),
        sa.Column('periodo_inicio', sa.DateTime(timezone=True), nullable=False),
        sa.Column('periodo_fin', sa.DateTime(timezone=True), nullable=False),
        sa.Column('proximo_cobro', sa.DateTime(timezone=True), nullable=True),
        sa.Column('gracia_hasta', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pausada_hasta', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('motivo_cancelacion', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('periodo_fin > periodo_inicio', name='ck_suscripcion_periodo'),
    )
    op.create_index('ix_suscripcion_usuario_id', 'suscripcion', ['usuario_id'])
    op.create_index('ix_suscripcion_estado', 'suscripcion', ['estado'])

    op.create_table(
        'pago',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('suscripcion_id', sa.String(36), sa.ForeignKey('suscripcion.id'), nullable=False),
        sa.Column('monto', sa.Numeric(12, 2), nullable=False),
        sa.Column('moneda', sa.String(3), nullable=False),
        sa.Column('estado', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('proveedor', sa.String(50), nullable=True),
        sa.Column('referencia', sa.String(100), nullable=True),
        sa.Column('periodo_inicio', sa.DateTime(timezone=True), nullable=True),
        sa.Column('periodo_fin', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('nota', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_pago_suscripcion_id', 'pago', ['suscripcion_id'])

    op.create_table(
        'orden_trabajo',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('cliente_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('propiedad_id', sa.Integer(), sa.ForeignKey('propiedad.id'), nullable=True),
        sa.Column('suscripcion_id', sa.String(36), sa.ForeignKey('suscripcion.id'), nullable=True),
        sa.Column('cuadrilla_id', sa.String(36), sa.ForeignKey('cuadrilla.id'), nullable=True),
        sa.Column('categoria_servicio', sa.String(100), nullable=False),
        sa.Column('situacion', sa.String(1000), nullable=False),
        sa.Column('descripcion', sa.String(2000), nullable=True),
        sa.Column('prioridad', sa.String(20), nullable=False, server_default='MEDIA'),
        sa.Column('canal', sa.String(20), nullable=True),
        sa.Column('peligro_accidente', sa.String(10), nullable=True),
        sa.Column('estado', sa.String(20), nullable=False, server_default='PENDIENTE'),
        sa.Column('direccion', sa.String(300), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('zona_horaria', sa.String(64), nullable=True),
        sa.Column('progreso', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('programada_para', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('progreso BETWEEN 0 AND 100', name='ck_orden_progreso'),
    )
    op.create_index('ix_orden_trabajo_cliente_id', 'orden_trabajo', ['cliente_id'])
    op.create_index('ix_orden_trabajo_cuadrilla_id', 'orden_trabajo', ['cuadrilla_id'])
    op.create_index('ix_orden_trabajo_estado', 'orden_trabajo', ['estado'])

    op.create_table(
        'evento_orden',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('orden_id', sa.String(36), sa.ForeignKey('orden_trabajo.id'), nullable=False),
        sa.Column('tipo', sa.String(20), nullable=False),
        sa.Column('at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('nota', sa.String(1000), nullable=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('estado_desde', sa.String(20), nullable=True),
        sa.Column('estado_hacia', sa.String(20), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
    )
    op.create_index('ix_evento_orden_orden_id', 'evento_orden', ['orden_id'])


def downgrade() -> None:
    op.drop_index('ix_evento_orden_orden_id', table_name='evento_orden')
    op.drop_table('evento_orden')
    op.drop_index('ix_orden_trabajo_estado', table_name='orden_trabajo')
    op.drop_index('ix_orden_trabajo_cuadrilla_id', table_name='orden_trabajo')
    op.drop_index('ix_orden_trabajo_cliente_id', table_name='orden_trabajo')
    op.drop_table('orden_trabajo')
    op.drop_index('ix_pago_suscripcion_id', table_name='pago')
    op.drop_table('pago')
    op.drop_index('ix_suscripcion_estado', table_name='suscripcion')
    op.drop_index('ix_suscripcion_usuario_id', table_name='suscripcion')
    op.drop_table('suscripcion')
    op.drop_table('plan')
    op.drop_table('cuadrilla')
    op.drop_table('propiedad')
    op.drop_table('usuario')
